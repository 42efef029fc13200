"""
csv_ingestion.domain.types -- Pure frozen dataclasses for the ingestion engine.

ZERO I/O. Everything here is created per job or per file and never outlives
a single file's processing, except FileResult/JobResult summaries.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


# =============================================================================
# Dialect
# =============================================================================


@dataclass(frozen=True)
class DialectConfig:
    """Immutable CSV/TSV formatting options for one job.

    ``escape_character`` of None means "same as the quote character", i.e. a
    doubled quote inside a quoted cell stands for one literal quote.
    """

    separator: str = ","
    quote_character: str = '"'
    escape_character: str | None = None
    quote_disabled: bool = False
    escape_disabled: bool = False
    ignore_leading_whitespaces: bool = False
    ignore_trailing_whitespaces: bool = False
    ignore_empty_lines: bool = False
    skip_lines: int = 0
    ignore_line_pattern: re.Pattern[str] | None = None
    null_string: str | None = None
    break_string: str | None = None


# =============================================================================
# Files, rows, records
# =============================================================================


@dataclass(frozen=True)
class CandidateFile:
    """A file chosen for processing, with its modification time for ordering."""

    path: Path
    modified_at: datetime


@dataclass(frozen=True)
class Row:
    """One logical line of a source file.

    ``line_number`` is the 1-based physical line the row started on.
    """

    cells: tuple[str, ...]
    line_number: int


class ProcessingOutcome(str, Enum):
    """Per-record result."""

    STORED = "stored"
    DISCARDED_EMPTY = "discarded_empty"
    RECOVERABLE_FAILURE = "recoverable_failure"
    FATAL_FAILURE = "fatal_failure"  # Failure that aborts the rest of the file


class FileState(str, Enum):
    """Per-file lifecycle state."""

    OPENING = "opening"
    HEADER_READ = "header_read"
    STREAMING = "streaming"
    CLOSING = "closing"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class FileResult:
    """Summary of one processed file."""

    path: Path
    state: FileState
    rows_read: int = 0
    stored: int = 0
    discarded: int = 0
    failed: int = 0


@dataclass(frozen=True)
class JobResult:
    """Summary of one job run over all selected files."""

    files: tuple[FileResult, ...] = ()
    deleted: tuple[Path, ...] = ()
    quarantined: tuple[Path, ...] = ()

    @property
    def stored(self) -> int:
        return sum(f.stored for f in self.files)

    @property
    def failed(self) -> int:
        return sum(f.failed for f in self.files)


# =============================================================================
# Statistics correlation
# =============================================================================


class StatsAction(str, Enum):
    """Phases reported to the statistics recorder for one row."""

    PREPARED = "prepared"
    EVALUATED = "evaluated"
    FINISHED = "finished"
    ACCESS_EXCEPTION = "access_exception"
    EXCEPTION = "exception"


@dataclass(eq=False)
class StatsKey:
    """Opaque per-row correlation token (``<path>#<line>``).

    Mutable only in ``url``, which is filled in once the transform step has
    produced a document URL. Compared by identity.
    """

    key: str
    url: str | None = field(default=None)

    @classmethod
    def for_row(cls, path: Path, line_number: int) -> StatsKey:
        return cls(f"{path}#{line_number}")

    def __str__(self) -> str:
        return self.key
