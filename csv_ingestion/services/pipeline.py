"""
Ingestion pipeline: read one file, project each row, transform, store.

Per-file state machine::

    OPENING -> HEADER_READ? -> STREAMING -> CLOSING -> COMPLETED | ABORTED

Invariants:
    - Rows are processed strictly in order; row N+1 is never started before
      row N's outcome is classified.
    - A row failure is caught at the row boundary, recorded through the
      failure recorder and never aborts the file, unless the failure is a
      DataStoreCrawlingError flagged ``aborted``.
    - Statistics are always finalized (``done``) for every row that began.
    - Open/read errors, and failures to record a failure, are fatal for the
      file: wrapped in FileProcessingError and propagated.
    - The stream is closed on every exit path.
    - The liveness flag is polled once per row boundary.
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any, Callable

from csv_ingestion.adapters.row_parser import RowParser
from csv_ingestion.collaborators.protocols import (
    FailureRecorder,
    RecordSink,
    ScriptEvaluator,
    StatsRecorder,
)
from csv_ingestion.config.loader import JobConfig
from csv_ingestion.config.options import IngestionSettings
from csv_ingestion.domain.types import (
    FileResult,
    FileState,
    ProcessingOutcome,
    Row,
    StatsAction,
    StatsKey,
)
from csv_ingestion.exceptions import FileProcessingError
from csv_ingestion.logging_config import LogContext, get_logger
from csv_ingestion.mapping.projector import RecordProjector
from csv_ingestion.services.failures import classify_failure

logger = get_logger("services.pipeline")

CRAWLER_STATS_KEY = "crawler_stats_key"
CRAWLING_CONTEXT_KEY = "crawlingContext"


class Liveness:
    """Process-wide cooperative cancellation flag.

    ``stop()`` lets the current row finish and ends every file loop at the
    next row boundary.
    """

    def __init__(self) -> None:
        self._stop_event = threading.Event()

    @property
    def alive(self) -> bool:
        return not self._stop_event.is_set()

    def stop(self) -> None:
        self._stop_event.set()

    def reset(self) -> None:
        self._stop_event.clear()


class IngestionPipeline:
    """Processes single files for one job.

    Contract:
        - ``process_file()`` returns a FileResult or raises FileProcessingError.
        - Shared collaborators must tolerate concurrent calls when several
          workers drive the same pipeline.

    Non-goals:
        - Does NOT select files or dispose of them (see FileSelector and
          FileLifecycleManager).
        - Does NOT time out stuck sink or evaluator calls.
    """

    def __init__(
        self,
        job_config: JobConfig,
        settings: IngestionSettings,
        sink: RecordSink,
        evaluator: ScriptEvaluator,
        failure_recorder: FailureRecorder,
        stats: StatsRecorder,
        liveness: Liveness | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._job = job_config
        self._settings = settings
        self._sink = sink
        self._evaluator = evaluator
        self._failures = failure_recorder
        self._stats = stats
        self._liveness = liveness or Liveness()
        self._sleep = sleep

    @property
    def liveness(self) -> Liveness:
        return self._liveness

    # -------------------------------------------------------------------------
    # File level
    # -------------------------------------------------------------------------

    def process_file(self, path: Path) -> FileResult:
        """Read ``path`` to the end (or abort/stop) and store its records.

        Raises:
            FileProcessingError: if the file cannot be opened or read, or a
                failure record cannot be persisted.
        """
        path = path.absolute()
        with LogContext.bind(file_path=str(path)):
            logger.info("file_loading", extra={"encoding": self._settings.encoding})
            counts = {outcome: 0 for outcome in ProcessingOutcome}
            rows_read = 0
            state = FileState.OPENING
            parser: RowParser | None = None
            try:
                parser = RowParser.open(path, self._settings.dialect, self._settings.encoding)
                header: Row | None = None
                if self._settings.has_header_line:
                    header = parser.read_row()
                    state = FileState.HEADER_READ
                    logger.debug("header_read", extra={"header": list(header.cells) if header else None})

                state = FileState.STREAMING
                projector = RecordProjector(
                    path, self._job.defaults, self._job.params, crawling_config=self._job
                )
                while self._liveness.alive:
                    row = parser.read_row()
                    if row is None:
                        break
                    rows_read += 1
                    outcome = self._process_row(path, row, header, projector)
                    counts[outcome] += 1
                    if outcome is ProcessingOutcome.FATAL_FAILURE:
                        state = FileState.ABORTED
                        break
                    if outcome is not ProcessingOutcome.DISCARDED_EMPTY and self._settings.read_interval_ms > 0:
                        self._sleep(self._settings.read_interval_ms / 1000)
            except Exception as exc:
                logger.error("file_failed", extra={"state": state.value}, exc_info=True)
                raise FileProcessingError(
                    "Failed to crawl data when reading csv file.", path=str(path)
                ) from exc
            finally:
                if parser is not None:
                    parser.close()

            if state is not FileState.ABORTED:
                state = FileState.COMPLETED
            result = FileResult(
                path=path,
                state=state,
                rows_read=rows_read,
                stored=counts[ProcessingOutcome.STORED],
                discarded=counts[ProcessingOutcome.DISCARDED_EMPTY],
                failed=counts[ProcessingOutcome.RECOVERABLE_FAILURE]
                + counts[ProcessingOutcome.FATAL_FAILURE],
            )
            logger.info(
                "file_processed",
                extra={
                    "state": result.state.value,
                    "rows_read": result.rows_read,
                    "stored": result.stored,
                    "discarded": result.discarded,
                    "failed": result.failed,
                },
            )
            return result

    # -------------------------------------------------------------------------
    # Row level
    # -------------------------------------------------------------------------

    def _process_row(
        self,
        path: Path,
        row: Row,
        header: Row | None,
        projector: RecordProjector,
    ) -> ProcessingOutcome:
        key = StatsKey.for_row(path, row.line_number)
        params = self._job.params.copy(**{CRAWLER_STATS_KEY: key})
        target: dict[str, Any] = dict(self._job.defaults)
        with LogContext.bind(stats_key=str(key)):
            try:
                self._stats.begin(key)
                projection = projector.project(row, header)
                if projection.empty:
                    logger.debug("record_discarded", extra={"line_number": row.line_number})
                    self._stats.discard(key)
                    return ProcessingOutcome.DISCARDED_EMPTY

                self._stats.record(key, StatsAction.PREPARED)

                context = projection.record
                context[CRAWLING_CONTEXT_KEY] = {"doc": target}
                for field_name, expression in self._job.scripts.items():
                    value = self._evaluator.evaluate(self._settings.script_type, expression, context)
                    if value is not None:
                        target[field_name] = value

                self._stats.record(key, StatsAction.EVALUATED)

                url = target.get("url")
                if isinstance(url, str):
                    key.url = url

                self._sink.store(params, target)
                self._stats.record(key, StatsAction.FINISHED)
                logger.debug("record_stored", extra={"line_number": row.line_number})
                return ProcessingOutcome.STORED
            except Exception as exc:
                failure = classify_failure(exc, path, row.line_number)
                logger.warning(
                    "record_failed",
                    extra={
                        "line_number": row.line_number,
                        "error_kind": failure.error_kind,
                        "url": failure.url,
                        "aborted": failure.aborted,
                    },
                    exc_info=True,
                )
                self._failures.store(self._job, failure.error_kind, failure.url, failure.target)
                self._stats.record(
                    key,
                    StatsAction.ACCESS_EXCEPTION if failure.access else StatsAction.EXCEPTION,
                )
                return failure.outcome
            finally:
                self._stats.done(key)
