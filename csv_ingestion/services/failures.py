"""
Row failure classification. Pure; no I/O.

Access failures (CrawlingAccessError):
    - MultipleCrawlingAccessError: the last collected cause is representative.
    - error kind: class of the representative's cause, else its own class.
    - url: DataStoreCrawlingError.url when available, else ``<path>:<line>``.
    - DataStoreCrawlingError.aborted stops the rest of the file.

Anything else is unclassified: own class as error kind, synthesized url,
never aborts.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from csv_ingestion.domain.types import ProcessingOutcome
from csv_ingestion.exceptions import (
    CrawlingAccessError,
    DataStoreCrawlingError,
    MultipleCrawlingAccessError,
)


@dataclass(frozen=True)
class ClassifiedFailure:
    error_kind: str
    url: str
    target: BaseException
    access: bool
    aborted: bool = False

    @property
    def outcome(self) -> ProcessingOutcome:
        if self.aborted:
            return ProcessingOutcome.FATAL_FAILURE
        return ProcessingOutcome.RECOVERABLE_FAILURE


def qualified_name(error: BaseException) -> str:
    cls = type(error)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def row_url(path: Path, line_number: int) -> str:
    return f"{path}:{line_number}"


def classify_failure(error: BaseException, path: Path, line_number: int) -> ClassifiedFailure:
    if not isinstance(error, CrawlingAccessError):
        return ClassifiedFailure(
            error_kind=qualified_name(error),
            url=row_url(path, line_number),
            target=error,
            access=False,
        )

    target: BaseException = error
    if isinstance(target, MultipleCrawlingAccessError) and target.causes:
        target = target.causes[-1]

    cause = target.__cause__
    error_kind = qualified_name(cause if cause is not None else target)

    if isinstance(target, DataStoreCrawlingError):
        return ClassifiedFailure(
            error_kind=error_kind,
            url=target.url,
            target=target,
            access=True,
            aborted=target.aborted,
        )
    return ClassifiedFailure(
        error_kind=error_kind,
        url=row_url(path, line_number),
        target=target,
        access=True,
    )
