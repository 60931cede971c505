"""
Print the topics and words parsed from the vocabulary csv, without touching
Anki. Useful to check the csv layout before an import.

Configuration: conf/importer.yaml
"""
import logging
import os

from vocabtocards import io
from vocabtocards.partitioner import CsvSliceParser, ParseConfig
from vocabtocards.vocab import parse_topics

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


# ====
# Load
# ====
conf = io.get_conf(CONF_FILENAME)
csv_filepath = os.path.join(io.get_data_path(), conf["csv_filepath"])
parser = CsvSliceParser.from_file(
    filepath=csv_filepath,
    config=ParseConfig.from_dict(conf.get("parse")),
)
topics = parse_topics(
    parser=parser,
    drop_unnamed_topics=conf.get("drop_unnamed_topics", True),
)


# =====
# Print
# =====
for topic in topics:
    print(f"{topic.name}:")
    for word in topic.words:
        print(f"  {word.japanese}, {word.english}, {word.kanji}")
