"""
Row parser: dialect-aware CSV/TSV reading over a byte stream.

Uses csv.reader for quote/escape/separator handling and layers the
connector's line rules on top of it:

    skip_lines           leading physical lines dropped before anything else
    ignore_line_pattern  physical lines fully matching the pattern are dropped
    ignore_empty_lines   blank logical lines produce no row
    whitespace trimming  leading spaces before a quote are skipped while
                         splitting; both ends of each cell trimmed after
    break_string         replaces newlines embedded in a quoted cell
    null_string          a cell equal to it becomes ""

Streams; never loads the whole file. Malformed quoting and undecodable
bytes raise (csv.Error / UnicodeDecodeError) and are fatal for the file.
"""

from __future__ import annotations

import csv
import io
import re
from pathlib import Path
from typing import BinaryIO, Iterator

from csv_ingestion.domain.types import DialectConfig, Row

_NEWLINES = re.compile(r"\r\n|\r|\n")


def _get_encoding(encoding: str) -> str:
    if encoding.lower().replace("_", "-") in ("utf-8", "utf8"):
        return "utf-8-sig"  # Strip BOM if present
    return encoding


def _reader_options(dialect: DialectConfig) -> dict:
    """Translate DialectConfig into csv.reader keyword arguments."""
    quote = dialect.quote_character
    escape = dialect.escape_character
    options: dict = {
        "delimiter": dialect.separator,
        "quotechar": quote,
        "quoting": csv.QUOTE_NONE if dialect.quote_disabled else csv.QUOTE_MINIMAL,
        "skipinitialspace": dialect.ignore_leading_whitespaces,
        # csv keeps text between a closing quote and the separator only when
        # not strict; trailing trimming then removes the whitespace.
        "strict": not dialect.ignore_trailing_whitespaces,
    }
    if dialect.escape_disabled:
        options["escapechar"] = None
        options["doublequote"] = False
    elif escape is None or escape == quote:
        options["escapechar"] = None
        options["doublequote"] = True
    else:
        options["escapechar"] = escape
        options["doublequote"] = False
    return options


class RowParser:
    """Lazy sequence of Rows read from one source stream.

    Call ``read_row()`` once to take a header, then iterate for data rows.
    ``read_row()`` returns None at end of stream.
    """

    def __init__(self, stream: BinaryIO, dialect: DialectConfig, encoding: str = "utf-8"):
        self._dialect = dialect
        self._text = io.TextIOWrapper(stream, encoding=_get_encoding(encoding), newline="")
        self._line_number = 0
        self._row_start: int | None = None
        self._reader = csv.reader(self._physical_lines(), **_reader_options(dialect))

    @classmethod
    def open(cls, path: Path, dialect: DialectConfig, encoding: str = "utf-8") -> RowParser:
        stream = open(path, "rb")
        try:
            return cls(stream, dialect, encoding)
        except Exception:
            stream.close()
            raise

    @property
    def line_number(self) -> int:
        """Last physical line consumed (1-based, 0 before reading)."""
        return self._line_number

    def _physical_lines(self) -> Iterator[str]:
        pattern = self._dialect.ignore_line_pattern
        for number, line in enumerate(self._text, start=1):
            self._line_number = number
            if number <= self._dialect.skip_lines:
                continue
            if pattern is not None and pattern.fullmatch(line.rstrip("\r\n")):
                continue
            if self._row_start is None:
                self._row_start = number
            yield line

    def _normalize(self, cell: str) -> str:
        d = self._dialect
        if d.break_string is not None:
            cell = _NEWLINES.sub(lambda _m: d.break_string, cell)
        if d.ignore_leading_whitespaces:
            cell = cell.lstrip()
        if d.ignore_trailing_whitespaces:
            cell = cell.rstrip()
        if d.null_string is not None and cell == d.null_string:
            return ""
        return cell

    def read_row(self) -> Row | None:
        while True:
            self._row_start = None
            values = next(self._reader, None)
            if values is None:
                return None
            if not values:
                if self._dialect.ignore_empty_lines:
                    continue
                values = [""]
            line = self._row_start if self._row_start is not None else self._line_number
            return Row(cells=tuple(self._normalize(v) for v in values), line_number=line)

    def __iter__(self) -> Iterator[Row]:
        while (row := self.read_row()) is not None:
            yield row

    def close(self) -> None:
        self._text.close()

    def __enter__(self) -> RowParser:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
