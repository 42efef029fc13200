"""
CsvIngestionEngine -- one job run: select files, then ingest them.

Composition rather than subclassing:

    single shot   FileSelector(SuffixSelectionPolicy) -> IngestionPipeline
                  File errors propagate and stop the job.
    watch mode    FileSelector(AgeGatedSelectionPolicy) -> FileLifecycleManager
                  Files are deleted or quarantined after processing, several
                  may run concurrently, sink writes are serialized and
                  committed at the end of the batch.

Collaborators are injected; nothing is looked up globally.
"""

from __future__ import annotations

import time
from typing import Callable

from csv_ingestion.collaborators.evaluator import FieldScriptEvaluator
from csv_ingestion.collaborators.memory import (
    InMemoryFailureRecorder,
    InMemoryStatsRecorder,
    SynchronizedRecordSink,
)
from csv_ingestion.collaborators.protocols import (
    FailureRecorder,
    RecordSink,
    ScriptEvaluator,
    StatsRecorder,
)
from csv_ingestion.config.loader import JobConfig
from csv_ingestion.config.options import IngestionSettings, resolve_settings
from csv_ingestion.domain.clock import Clock
from csv_ingestion.domain.types import JobResult
from csv_ingestion.logging_config import LogContext, get_logger
from csv_ingestion.selection.selector import (
    AgeGatedSelectionPolicy,
    FileSelectionPolicy,
    FileSelector,
)
from csv_ingestion.services.lifecycle import DisposalPolicy, FileLifecycleManager
from csv_ingestion.services.pipeline import IngestionPipeline, Liveness

logger = get_logger("services.engine")


class CsvIngestionEngine:
    """Runs one ingestion job.

    Use ``single_shot()`` or ``watch()`` to build the two standard variants;
    the constructor accepts any selection/disposal combination.
    """

    def __init__(
        self,
        job_config: JobConfig,
        sink: RecordSink,
        evaluator: ScriptEvaluator | None = None,
        failure_recorder: FailureRecorder | None = None,
        stats: StatsRecorder | None = None,
        *,
        settings: IngestionSettings | None = None,
        selection_policy: FileSelectionPolicy | None = None,
        disposal_policy: DisposalPolicy | None = None,
        liveness: Liveness | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._job = job_config
        self._settings = settings or resolve_settings(job_config.params)
        self._selector = FileSelector(selection_policy)
        self._disposal = disposal_policy
        if disposal_policy is not None and not isinstance(sink, SynchronizedRecordSink):
            sink = SynchronizedRecordSink(sink)
        self._sink = sink
        self._pipeline = IngestionPipeline(
            job_config,
            self._settings,
            sink,
            evaluator or FieldScriptEvaluator(),
            failure_recorder or InMemoryFailureRecorder(),
            stats or InMemoryStatsRecorder(),
            liveness=liveness,
            sleep=sleep,
        )

    @classmethod
    def single_shot(cls, job_config: JobConfig, sink: RecordSink, **kwargs) -> CsvIngestionEngine:
        return cls(job_config, sink, **kwargs)

    @classmethod
    def watch(
        cls,
        job_config: JobConfig,
        sink: RecordSink,
        *,
        clock: Clock | None = None,
        delete_processed: bool = True,
        tolerate_failures: bool = True,
        **kwargs,
    ) -> CsvIngestionEngine:
        settings = kwargs.pop("settings", None) or resolve_settings(job_config.params)
        return cls(
            job_config,
            sink,
            settings=settings,
            selection_policy=AgeGatedSelectionPolicy(settings.timestamp_margin_ms, clock),
            disposal_policy=DisposalPolicy(delete_processed, tolerate_failures),
            **kwargs,
        )

    @property
    def settings(self) -> IngestionSettings:
        return self._settings

    @property
    def liveness(self) -> Liveness:
        return self._pipeline.liveness

    def run(self) -> JobResult:
        """
        Raises:
            ConfigurationError: if neither files nor directories are configured.
            FileProcessingError: on a file-level failure that is not tolerated.
        """
        with LogContext.bind(job_id=self._job.name):
            candidates = self._selector.select(self._job.params)
            if not candidates:
                logger.warning("no_csv_file")
                return JobResult()
            logger.info("job_started", extra={"file_count": len(candidates)})

            if self._disposal is None:
                files = tuple(self._pipeline.process_file(c.path) for c in candidates)
                result = JobResult(files=files)
            else:
                manager = FileLifecycleManager(
                    self._pipeline,
                    self._disposal,
                    num_of_threads=self._settings.num_of_threads,
                    commit=getattr(self._sink, "commit", None),
                )
                result = manager.run(candidates)

            logger.info(
                "job_finished",
                extra={
                    "file_count": len(result.files),
                    "stored": result.stored,
                    "failed": result.failed,
                    "quarantined": len(result.quarantined),
                },
            )
            return result
