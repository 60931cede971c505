"""
Japanese vocabulary lists, with topics as column slices

Expected csv layout: each topic spans 3 columns. The topic name is the first
header cell of its slice, the 2 other header cells are blank. Rows follow the
pattern word, translation, kanji.

    topic1  , (blank)       , (blank), topic2  , (blank)       , (blank)
    t1_word1, t1_translation, t1_kanji, t2_word1, t2_translation, t2_kanji
"""
from dataclasses import dataclass, field
import logging
from typing import Iterator, List, Optional

from vocabtocards.annotations import ColumnIndex, FilePath, SliceIndex, TopicName
from vocabtocards.partitioner import (
    CsvSliceParser,
    DecodeError,
    ParseConfig,
    Row,
    SliceDecoder,
)


# ======
# Logger
# ======
logger = logging.getLogger(__name__)


# ============
# Data classes
# ============
@dataclass(frozen=True)
class Word:
    japanese: str
    english: str
    kanji: str


@dataclass
class Topic:
    name: TopicName
    words: List[Word] = field(default_factory=list)


def word_from_row(row: Row, start_col: ColumnIndex) -> Word:
    """Decode (japanese, english, kanji) from 3 consecutive cells

    Cells must exist but can be empty.

    Raises
        DecodeError: if one of the 3 cells is missing from `row`
    """
    values = []
    for offset, field_name in enumerate(["japanese", "english", "kanji"]):
        col = start_col + offset
        if col >= len(row):
            raise DecodeError(f"Missing {field_name} field")
        values.append(row[col])
    return Word(*values)


WORD_DECODER = SliceDecoder(column_count=3, decode=word_from_row)


@dataclass
class LazyTopic:
    """Topic whose words are decoded on demand

    Attributes
        name (TopicName)
        parser (CsvSliceParser): parser holding the whole file
        slice_index (SliceIndex): index of the topic's slice
    """

    name: TopicName
    parser: CsvSliceParser
    slice_index: SliceIndex

    def words(self) -> Iterator[Word]:
        """Lazily decode the words. Can be called again to restart."""
        return self.parser.parse_slice_iter(
            slice_index=self.slice_index, decoder=WORD_DECODER
        )


# ====
# Core
# ====
def topic_name(parser: CsvSliceParser, slice_index: SliceIndex) -> TopicName:
    """Name of a topic: the first header cell of its slice"""
    headers = parser.slice_headers(
        slice_index=slice_index, column_count=WORD_DECODER.column_count
    )
    if not headers:
        return ""
    return headers[0]


def _named_slice_indices(
    parser: CsvSliceParser, drop_unnamed_topics: bool
) -> Iterator[tuple[SliceIndex, TopicName]]:
    """Slices to consider as topics

    Slices without a name are dropped before any of their rows is looked at.
    """
    for i in range(parser.slice_count(WORD_DECODER.column_count)):
        name = topic_name(parser=parser, slice_index=i)
        if drop_unnamed_topics and name.strip() == "":
            logger.debug(f"-- Slice {i} has no topic name. Skipping it.")
            continue
        yield i, name


def parse_topics(
    parser: CsvSliceParser, drop_unnamed_topics: bool = True
) -> List[Topic]:
    """Decode all topics and their words

    Raises
        DecodeError: if a word of any topic cannot be decoded
    """
    topics = [
        Topic(
            name=name,
            words=parser.parse_slice(slice_index=i, decoder=WORD_DECODER),
        )
        for i, name in _named_slice_indices(
            parser=parser, drop_unnamed_topics=drop_unnamed_topics
        )
    ]
    logger.info(
        f"-- Parsed {len(topics)} topics,"
        f" {sum(len(t.words) for t in topics)} words"
    )
    return topics


def iter_topics(
    parser: CsvSliceParser, drop_unnamed_topics: bool = True
) -> Iterator[LazyTopic]:
    """Same as `parse_topics`, but words are decoded only when requested"""
    for i, name in _named_slice_indices(
        parser=parser, drop_unnamed_topics=drop_unnamed_topics
    ):
        yield LazyTopic(name=name, parser=parser, slice_index=i)


def load_topics(
    filepath: FilePath,
    config: Optional[ParseConfig] = None,
    drop_unnamed_topics: bool = True,
) -> List[Topic]:
    """Read a vocabulary csv and decode all its topics"""
    parser = CsvSliceParser.from_file(filepath=filepath, config=config)
    return parse_topics(parser=parser, drop_unnamed_topics=drop_unnamed_topics)
