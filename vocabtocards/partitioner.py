"""
Parse csv files whose columns repeat in fixed-width groups ("slices")

For instance, a vocabulary list where each topic spans 3 columns (word,
translation, kanji), and topics follow each other in the header:

    verbs   ,                 ,       , adjectives,     ,
    おどろく, to be surprised , 驚く  , はやい    , fast, 早い

Here, slice 0 is the "verbs" topic (columns 0-2) and slice 1 the "adjectives"
topic (columns 3-5).

The record type is supplied by the caller through a `SliceDecoder`: the
number of columns of a slice, and a function turning (row, start column)
into a record.
"""
from dataclasses import dataclass, fields
import logging
from typing import Callable, Generic, Iterator, Optional, Sequence, TypeVar

import pandas as pd

from vocabtocards.annotations import Cell, ColumnIndex, FilePath, SliceIndex


# ======
# Logger
# ======
logger = logging.getLogger(__name__)


# =====
# Types
# =====
Row = tuple[Cell, ...]
T = TypeVar("T")


# ==========
# Exceptions
# ==========
class FormatError(Exception):
    """Raise when a file cannot be tokenized as delimited records"""

    pass


class OutOfBoundsError(IndexError):
    """Raise when a slice's columns go beyond the header"""

    def __init__(
        self,
        slice_index: SliceIndex,
        start: ColumnIndex,
        end: ColumnIndex,
        header_len: int,
    ):
        self.slice_index = slice_index
        self.start = start
        self.end = end
        self.header_len = header_len
        super().__init__(
            f"Slice {slice_index} out of bounds (columns {start}-{end}"
            f" requested, but only {header_len} columns available)"
        )


class DecodeError(ValueError):
    """Raise when the cells of a slice cannot be turned into a record"""

    pass


# ======
# Config
# ======
@dataclass(frozen=True)
class ParseConfig:
    """Parsing behaviour

    Attributes
        skip_empty_rows (bool): skip rows whose cells are all blank within the
            slice.
        trim_fields (bool): strip surrounding whitespace from every cell at
            load time.
        reserve_capacity (bool): performance hint. Kept for configuration
            compatibility, never changes results.
    """

    skip_empty_rows: bool = True
    trim_fields: bool = True
    reserve_capacity: bool = True

    @classmethod
    def from_dict(cls, conf: Optional[dict]) -> "ParseConfig":
        """Build from the `parse` section of a configuration file"""
        if conf is None:
            return cls()
        known_keys = {f.name for f in fields(cls)}
        unknown_keys = set(conf.keys()) - known_keys
        if unknown_keys:
            raise KeyError(
                f"Unknown parse options {sorted(unknown_keys)}. Expected a"
                f" subset of {sorted(known_keys)}"
            )
        for key, value in conf.items():
            if not isinstance(value, bool):
                raise TypeError(
                    f"Parse option {key} must be true or false, got {value!r}"
                )
        return cls(**conf)


# =======
# Decoder
# =======
@dataclass(frozen=True)
class SliceDecoder(Generic[T]):
    """How to turn one slice of one row into a record of type T

    Attributes
        column_count (int): number of columns of a slice, i.e. the number of
            fields in T
        decode (Callable[[Row, ColumnIndex], T]): build a record from a row,
            starting at the given column. Must raise `DecodeError` on failure.
    """

    column_count: int
    decode: Callable[[Row, ColumnIndex], T]

    def __post_init__(self):
        if self.column_count <= 0:
            raise ValueError(
                f"column_count must be positive, got {self.column_count}"
            )


# ====
# Core
# ====
def _trim_row(row: Sequence[Cell]) -> Row:
    return tuple(cell.strip() for cell in row)


class CsvSliceParser:
    """Read-only view of a csv file, queried slice by slice

    The header and rows are loaded once and never mutated afterwards, so a
    parser can be shared by concurrent readers.

    Arguments
        headers (Sequence[Cell]): first record of the file
        records (Sequence[Sequence[Cell]]): all the following records
        config (Optional[ParseConfig])

    Attributes
        headers (Row)
        records (tuple[Row, ...])
        config (ParseConfig)
    """

    def __init__(
        self,
        headers: Sequence[Cell],
        records: Sequence[Sequence[Cell]],
        config: Optional[ParseConfig] = None,
    ):
        self.config = config if config is not None else ParseConfig()
        if self.config.trim_fields:
            self._headers = _trim_row(headers)
            self._records = tuple(_trim_row(record) for record in records)
        else:
            self._headers = tuple(headers)
            self._records = tuple(tuple(record) for record in records)

    @classmethod
    def from_records(
        cls,
        headers: Sequence[Cell],
        records: Sequence[Sequence[Cell]],
        config: Optional[ParseConfig] = None,
    ) -> "CsvSliceParser":
        """Create a parser from in-memory data"""
        return cls(headers=headers, records=records, config=config)

    @classmethod
    def from_file(
        cls, filepath: FilePath, config: Optional[ParseConfig] = None
    ) -> "CsvSliceParser":
        """Load a csv file. Its first record is the header.

        Raises
            OSError: the file cannot be opened or read
            FormatError: the content cannot be tokenized as csv records
        """
        try:
            df = pd.read_csv(
                filepath,
                header=None,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding="utf-8-sig",
            )
        except pd.errors.EmptyDataError:
            logger.info(f"-- {filepath} is empty")
            return cls(headers=(), records=(), config=config)
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            raise FormatError(f"Cannot parse {filepath} as csv: {e}") from e
        # Cells missing at the end of short lines are read as NaN
        df = df.fillna("")
        all_records = list(df.itertuples(index=False, name=None))
        parser = cls(
            headers=all_records[0], records=all_records[1:], config=config
        )
        logger.info(
            f"-- Loaded {parser.record_count} rows and"
            f" {len(parser.headers)} columns from {filepath}"
        )
        return parser

    @property
    def headers(self) -> Row:
        return self._headers

    @property
    def records(self) -> tuple[Row, ...]:
        return self._records

    @property
    def record_count(self) -> int:
        """Number of rows, header excluded"""
        return len(self._records)

    def slice_count(self, column_count: int) -> int:
        """Number of complete slices of `column_count` columns in the header"""
        if column_count <= 0:
            raise ValueError(
                f"column_count must be positive, got {column_count}"
            )
        return len(self._headers) // column_count

    def validate_slice(
        self, slice_index: SliceIndex, column_count: int
    ) -> tuple[ColumnIndex, ColumnIndex]:
        """Return the [start, end) columns of a slice

        Raises
            OutOfBoundsError: if the slice does not fit in the header
        """
        if column_count <= 0:
            raise ValueError(
                f"column_count must be positive, got {column_count}"
            )
        start = slice_index * column_count
        end = start + column_count
        if slice_index < 0 or end > len(self._headers):
            raise OutOfBoundsError(
                slice_index=slice_index,
                start=start,
                end=end,
                header_len=len(self._headers),
            )
        return start, end

    def slice_headers(
        self, slice_index: SliceIndex, column_count: int
    ) -> Optional[list[Cell]]:
        """Header names of a slice, None if the slice is out of bounds"""
        try:
            start, end = self.validate_slice(
                slice_index=slice_index, column_count=column_count
            )
        except OutOfBoundsError:
            return None
        return list(self._headers[start:end])

    @staticmethod
    def is_slice_empty(
        row: Sequence[Cell], start: ColumnIndex, end: ColumnIndex
    ) -> bool:
        """True if all cells in [start, end) are blank or absent"""
        return all(
            i >= len(row) or row[i].strip() == "" for i in range(start, end)
        )

    def _iter_decoded(
        self,
        start: ColumnIndex,
        end: ColumnIndex,
        decoder: SliceDecoder[T],
    ) -> Iterator[T]:
        for row in self._records:
            if self.config.skip_empty_rows and self.is_slice_empty(
                row=row, start=start, end=end
            ):
                continue
            yield decoder.decode(row, start)

    def parse_slice(
        self, slice_index: SliceIndex, decoder: SliceDecoder[T]
    ) -> list[T]:
        """Decode every row of a slice

        Raises
            OutOfBoundsError: if the slice does not fit in the header
            DecodeError: on the first row that cannot be decoded
        """
        start, end = self.validate_slice(
            slice_index=slice_index, column_count=decoder.column_count
        )
        return list(self._iter_decoded(start=start, end=end, decoder=decoder))

    def parse_slice_iter(
        self, slice_index: SliceIndex, decoder: SliceDecoder[T]
    ) -> Iterator[T]:
        """Same as `parse_slice`, but decode rows one at a time

        Bounds are checked at call time. Rows are filtered and decoded only
        when pulled, and a `DecodeError` is raised at the position of the
        failing row.
        """
        start, end = self.validate_slice(
            slice_index=slice_index, column_count=decoder.column_count
        )
        return self._iter_decoded(start=start, end=end, decoder=decoder)

    def parse_all_slices(self, decoder: SliceDecoder[T]) -> list[list[T]]:
        """`parse_slice` for each slice, in order"""
        return [
            self.parse_slice(slice_index=i, decoder=decoder)
            for i in range(self.slice_count(decoder.column_count))
        ]
