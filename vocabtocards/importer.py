"""
Import vocabulary topics into Anki

One main deck, and one subdeck per topic (`main::topic`). Each word becomes a
"Basic" note:
- front: kanji if any, japanese otherwise
- back: "japanese | english" if there is a kanji, english otherwise
"""
import copy
from dataclasses import dataclass
import logging
from typing import Dict, Iterable, List, Optional, Sequence

import tqdm

from vocabtocards.anki import (
    AnkiConnectClient,
    AnkiConnectionError,
    DuplicateScopeOptions,
    Note,
    NoteOptions,
)
from vocabtocards.annotations import DeckId, DeckName, NoteId, TopicName
from vocabtocards.partitioner import DecodeError
from vocabtocards.vocab import LazyTopic, Topic, Word


# ======
# Logger
# ======
logger = logging.getLogger(__name__)


# =========
# Constants
# =========
DEFAULT_MODEL_NAME = "Basic"
DEFAULT_EXTRA_TAGS = ("japanese", "vocabulary")
SUBDECK_SEPARATOR = "::"
FRONT_FIELD = "Front"
BACK_FIELD = "Back"
_BACK_SEPARATOR = " | "


# =======
# Results
# =======
@dataclass
class ImportResult:
    """Counts for the import of one topic

    Attributes
        topic_name (TopicName)
        added (int): notes created
        duplicates (int): notes refused as duplicates
        errors (int): notes refused for another reason
        decode_error (Optional[str]): set if the topic itself could not be
            decoded, in which case nothing was sent to Anki
    """

    topic_name: TopicName
    added: int = 0
    duplicates: int = 0
    errors: int = 0
    decode_error: Optional[str] = None

    @property
    def total(self) -> int:
        return self.added + self.duplicates + self.errors

    @property
    def is_failed(self) -> bool:
        return self.decode_error is not None

    def summary(self) -> str:
        if self.is_failed:
            return f"{self.topic_name}: failed ({self.decode_error})"
        return (
            f"{self.topic_name}: added={self.added},"
            f" duplicates={self.duplicates}, errors={self.errors},"
            f" total={self.total}"
        )


def summarize(results: Iterable[ImportResult]) -> ImportResult:
    """Sum the counts of several topics"""
    total = ImportResult(topic_name="all topics")
    for result in results:
        total.added += result.added
        total.duplicates += result.duplicates
        total.errors += result.errors
    return total


# ========
# Importer
# ========
class VocabImporter:
    """Turn topics into Anki notes and send them through AnkiConnect

    Arguments
        deck_name (DeckName): main deck. Topics go into its subdecks.
        client (Optional[AnkiConnectClient]): defaults to a client on the
            default url
        model_name (str): note type of the created notes
        allow_duplicate (bool): let Anki create notes whose first field
            already exists
        duplicate_scope (str): "deck" or "collection"
        extra_tags (Sequence[str]): tags added to every note, on top of the
            topic name
    """

    def __init__(
        self,
        deck_name: DeckName,
        client: Optional[AnkiConnectClient] = None,
        model_name: str = DEFAULT_MODEL_NAME,
        allow_duplicate: bool = False,
        duplicate_scope: str = "deck",
        extra_tags: Sequence[str] = DEFAULT_EXTRA_TAGS,
    ):
        self.deck_name = deck_name
        self.client = client if client is not None else AnkiConnectClient()
        self.model_name = model_name
        self.allow_duplicate = allow_duplicate
        self.duplicate_scope = duplicate_scope
        self.extra_tags = list(extra_tags)

    def with_model(self, model_name: str) -> "VocabImporter":
        """Copy of self, with another note type"""
        importer = copy.copy(self)
        importer.model_name = model_name
        return importer

    def with_url(self, url: str) -> "VocabImporter":
        """Copy of self, with a client on another AnkiConnect url"""
        importer = copy.copy(self)
        importer.client = AnkiConnectClient(
            url=url, timeout=self.client.timeout
        )
        return importer

    def subdeck_name(self, topic_name: TopicName) -> DeckName:
        if topic_name.strip() == "":
            return self.deck_name
        return f"{self.deck_name}{SUBDECK_SEPARATOR}{topic_name}"

    def initialise(self) -> DeckId:
        """Check AnkiConnect answers, and create the main deck"""
        try:
            version = self.client.check_connection()
        except AnkiConnectionError as e:
            raise AnkiConnectionError(
                "Cannot connect to Anki. Is Anki running with AnkiConnect"
                f" installed? Error: {e}"
            ) from e
        logger.info(f"-- Connected to AnkiConnect (version {version})")
        deck_id = self.client.create_deck(self.deck_name)
        logger.info(f"-- Deck '{self.deck_name}' ready")
        return deck_id

    def initialise_with_topics(
        self, topic_names: Iterable[TopicName]
    ) -> Dict[DeckName, DeckId]:
        """Create the main deck and one subdeck per topic

        Creating a deck that already exists is a no-op on Anki's side.
        """
        deck_ids = {self.deck_name: self.initialise()}
        for name in topic_names:
            subdeck_name = self.subdeck_name(name)
            if subdeck_name in deck_ids:
                continue
            deck_ids[subdeck_name] = self.client.create_deck(subdeck_name)
            logger.info(
                f"-- Created '{subdeck_name}', id = {deck_ids[subdeck_name]}"
            )
        return deck_ids

    def _tags(self, topic_name: TopicName) -> List[str]:
        # Anki tags are space-separated
        tags = ["_".join(topic_name.split())] + self.extra_tags
        return [tag for tag in tags if tag != ""]

    def word_to_note(self, word: Word, topic_name: TopicName) -> Note:
        """Build the note of a word from a given topic"""
        deck_name = self.subdeck_name(topic_name)
        if word.kanji.strip() == "":
            front = word.japanese
            back = word.english
        else:
            front = word.kanji
            back = word.japanese + _BACK_SEPARATOR + word.english
        return Note(
            deck_name=deck_name,
            model_name=self.model_name,
            fields={FRONT_FIELD: front, BACK_FIELD: back},
            tags=self._tags(topic_name),
            options=NoteOptions(
                allow_duplicate=self.allow_duplicate,
                duplicate_scope=self.duplicate_scope,
                duplicate_scope_options=DuplicateScopeOptions(
                    deck_name=deck_name,
                ),
            ),
        )

    def import_word(self, word: Word, topic_name: TopicName) -> NoteId:
        return self.client.add_note(self.word_to_note(word, topic_name))

    def import_topic(self, topic: Topic) -> ImportResult:
        """Add all words of a topic in one bulk call"""
        result = ImportResult(topic_name=topic.name)
        notes = [self.word_to_note(word, topic.name) for word in topic.words]
        for word, outcome in zip(topic.words, self.client.add_notes(notes)):
            if outcome.is_added:
                result.added += 1
            elif outcome.is_duplicate:
                result.duplicates += 1
                logger.debug(f"-- Duplicate: {word}")
            else:
                result.errors += 1
                logger.debug(f"-- Cannot add {word}: {outcome.error}")
        return result

    def import_all_topics(self, topics: Iterable[Topic]) -> List[ImportResult]:
        results = []
        for topic in tqdm.tqdm(list(topics), desc="Topics"):
            result = self.import_topic(topic)
            logger.info(f"-- {result.summary()}")
            results.append(result)
        return results

    def import_lazy_topics(
        self, lazy_topics: Iterable[LazyTopic]
    ) -> List[ImportResult]:
        """Same as `import_all_topics`, decoding words topic by topic

        A topic with an undecodable word is reported as failed and skipped.
        Other topics are imported anyway.
        """
        results = []
        for lazy_topic in tqdm.tqdm(list(lazy_topics), desc="Topics"):
            try:
                topic = Topic(name=lazy_topic.name, words=list(lazy_topic.words()))
            except DecodeError as e:
                result = ImportResult(
                    topic_name=lazy_topic.name, decode_error=str(e)
                )
                logger.warning(f"-- {result.summary()}")
                results.append(result)
                continue
            result = self.import_topic(topic)
            logger.info(f"-- {result.summary()}")
            results.append(result)
        return results
