"""
Typed exception hierarchy for the CSV ingestion connector.

Every exception carries a ``code`` class attribute (machine-readable) and
stores its context as attributes, so callers catch by type and log
structured data rather than parsing message strings.

    CsvIngestionError (base)
    |
    +-- DataStoreError
    |   +-- ConfigurationError      job-fatal: nothing to read
    |   +-- FileProcessingError     file-fatal: open/read/persist failure
    |
    +-- CrawlingAccessError         row-level, recoverable
    |   +-- MultipleCrawlingAccessError
    |   +-- DataStoreCrawlingError  carries url and an abort flag
    |
    +-- JobDefinitionError          malformed YAML job definition

Propagation:
    Row-level errors are caught at the row boundary by the pipeline and
    turned into a failure record. File-level errors propagate to the file's
    caller. ConfigurationError propagates to the job's caller.
"""

from __future__ import annotations


class CsvIngestionError(Exception):
    """Base exception for all CSV ingestion errors."""

    code: str = "CSV_INGESTION_ERROR"


# Data store (job / file level)


class DataStoreError(CsvIngestionError):
    """Base exception for job- and file-level data store errors."""

    code: str = "DATA_STORE_ERROR"


class ConfigurationError(DataStoreError):
    """The job parameters do not describe anything to ingest."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, *, keys: tuple[str, ...] = ()):
        self.keys = keys
        super().__init__(message)


class FileProcessingError(DataStoreError):
    """A single file could not be opened, read or fully processed."""

    code: str = "FILE_PROCESSING_ERROR"

    def __init__(self, message: str, *, path: str | None = None):
        self.path = path
        super().__init__(message)


# Row level


class CrawlingAccessError(CsvIngestionError):
    """
    The transform or sink layer could not access content for one record.

    ``cause`` may be given explicitly; otherwise the chained ``__cause__``
    is used (``raise CrawlingAccessError(...) from exc``).
    """

    code: str = "CRAWLING_ACCESS_ERROR"

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__


class MultipleCrawlingAccessError(CrawlingAccessError):
    """Several access failures collected for one record. The last one is representative."""

    code: str = "MULTIPLE_CRAWLING_ACCESS"

    def __init__(self, message: str, causes: list[BaseException] | tuple[BaseException, ...]):
        self.causes = tuple(causes)
        super().__init__(message)


class DataStoreCrawlingError(CrawlingAccessError):
    """
    Access failure that knows its own URL.

    When ``aborted`` is true the remainder of the current file is skipped
    after the failure is recorded.
    """

    code: str = "DATA_STORE_CRAWLING"

    def __init__(
        self,
        url: str,
        message: str,
        *,
        cause: BaseException | None = None,
        aborted: bool = False,
    ):
        self.url = url
        self.aborted = aborted
        super().__init__(message, cause=cause)


# Job definitions


class JobDefinitionError(CsvIngestionError):
    """A YAML job definition has the wrong shape."""

    code: str = "JOB_DEFINITION_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid job definition {source}: {reason}")
