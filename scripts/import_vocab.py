"""
Import the vocabulary csv into Anki, one subdeck per topic.

Requires Anki to be running with the AnkiConnect add-on.
Configuration: conf/importer.yaml
"""
import logging
import os

from vocabtocards import io
from vocabtocards.anki import AnkiConnectClient, AnkiConnectError
from vocabtocards.importer import VocabImporter, summarize
from vocabtocards.partitioner import CsvSliceParser, FormatError, ParseConfig
from vocabtocards.vocab import iter_topics

# =========
# Constants
# =========
CONF_FILENAME = "importer.yaml"


# ======
# Logger
# ======
logging.basicConfig(
    format="[%(levelname)s] %(asctime)s %(message)s", level=logging.INFO
)
logger = logging.getLogger(__name__)


# ============
# Load the csv
# ============
conf = io.get_conf(CONF_FILENAME)
csv_filepath = os.path.join(io.get_data_path(), conf["csv_filepath"])
try:
    parser = CsvSliceParser.from_file(
        filepath=csv_filepath,
        config=ParseConfig.from_dict(conf.get("parse")),
    )
except (OSError, FormatError) as e:
    logger.error(f"Cannot load {csv_filepath}: {e}")
    raise
lazy_topics = list(
    iter_topics(
        parser=parser,
        drop_unnamed_topics=conf.get("drop_unnamed_topics", True),
    )
)
logger.info(f"Found {len(lazy_topics)} topics")


# ==========
# Import all
# ==========
importer = VocabImporter(
    deck_name=conf["deck_name"],
    client=AnkiConnectClient(
        url=conf.get("anki_connect_url", "http://localhost:8765"),
        timeout=conf.get("timeout", 10.0),
    ),
    model_name=conf.get("model_name", "Basic"),
    allow_duplicate=conf.get("allow_duplicate", False),
    duplicate_scope=conf.get("duplicate_scope", "deck"),
    extra_tags=conf.get("extra_tags", []),
)
try:
    importer.initialise_with_topics([topic.name for topic in lazy_topics])
    results = importer.import_lazy_topics(lazy_topics)
except AnkiConnectError as e:
    logger.error(f"Import aborted: {e}")
    raise
failed = [result for result in results if result.is_failed]
logger.info(f"Done. {summarize(results).summary()}")
if failed:
    logger.warning(
        f"{len(failed)} topics could not be decoded:"
        f" {[result.topic_name for result in failed]}"
    )
