"""
Watch-mode file lifecycle: process each file once, then retire it.

Contract:
    - A file whose processing returned (COMPLETED or ABORTED) is deleted when
      ``delete_processed`` is set. A failed delete is logged only.
    - A file whose processing raised FileProcessingError is quarantined by
      appending ``.txt`` to its name when ``tolerate_failures`` is set; if the
      rename fails it is deleted instead; a failed delete is logged only.
      Without ``tolerate_failures`` the error propagates and stops the job.
    - Up to ``num_of_threads`` files are processed concurrently. The sink's
      buffered writes are committed once every file has been handled.
"""

from __future__ import annotations

import contextvars
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from csv_ingestion.domain.types import CandidateFile, FileResult, JobResult
from csv_ingestion.exceptions import FileProcessingError
from csv_ingestion.logging_config import get_logger
from csv_ingestion.services.pipeline import IngestionPipeline

logger = get_logger("services.lifecycle")

QUARANTINE_SUFFIX = ".txt"


@dataclass(frozen=True)
class Disposal:
    """What happened to one file after processing."""

    result: FileResult | None = None
    deleted: Path | None = None
    quarantined: Path | None = None


class DisposalPolicy:
    """Delete on success, quarantine on tolerated failure."""

    def __init__(self, delete_processed: bool = True, tolerate_failures: bool = True):
        self.delete_processed = delete_processed
        self.tolerate_failures = tolerate_failures

    def on_success(self, path: Path, result: FileResult) -> Disposal:
        if not self.delete_processed:
            return Disposal(result=result)
        if _delete(path):
            logger.info("file_deleted", extra={"path": str(path)})
            return Disposal(result=result, deleted=path)
        return Disposal(result=result)

    def on_failure(self, path: Path, error: FileProcessingError) -> Disposal:
        """Quarantine ``path``; re-raises ``error`` when failures are not tolerated."""
        if not self.tolerate_failures:
            raise error
        logger.error("file_processing_failed", extra={"path": str(path)}, exc_info=error)
        quarantine = path.with_name(path.name + QUARANTINE_SUFFIX)
        try:
            path.rename(quarantine)
        except OSError:
            logger.warning("file_rename_failed", extra={"path": str(path)}, exc_info=True)
            if _delete(path):
                return Disposal(deleted=path)
            return Disposal()
        logger.info("file_quarantined", extra={"path": str(path), "quarantine": str(quarantine)})
        return Disposal(quarantined=quarantine)


def _delete(path: Path) -> bool:
    try:
        path.unlink()
    except OSError:
        logger.warning("file_delete_failed", extra={"path": str(path)}, exc_info=True)
        return False
    return True


class FileLifecycleManager:
    """Fans files out over a bounded worker pool and disposes of each one."""

    def __init__(
        self,
        pipeline: IngestionPipeline,
        disposal: DisposalPolicy | None = None,
        num_of_threads: int = 1,
        commit: Callable[[], None] | None = None,
    ):
        self._pipeline = pipeline
        self._disposal = disposal or DisposalPolicy()
        self._num_of_threads = max(1, num_of_threads)
        self._commit = commit

    def process(self, candidate: CandidateFile) -> Disposal:
        try:
            result = self._pipeline.process_file(candidate.path)
        except FileProcessingError as exc:
            return self._disposal.on_failure(candidate.path, exc)
        return self._disposal.on_success(candidate.path, result)

    def run(self, candidates: list[CandidateFile]) -> JobResult:
        disposals: list[Disposal] = []
        with ThreadPoolExecutor(
            max_workers=self._num_of_threads, thread_name_prefix="csv-file"
        ) as executor:
            futures: list[Future[Disposal]] = [
                executor.submit(contextvars.copy_context().run, self.process, candidate)
                for candidate in candidates
            ]
            try:
                for future in futures:
                    disposals.append(future.result())
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        if self._commit is not None:
            self._commit()

        return JobResult(
            files=tuple(d.result for d in disposals if d.result is not None),
            deleted=tuple(d.deleted for d in disposals if d.deleted is not None),
            quarantined=tuple(d.quarantined for d in disposals if d.quarantined is not None),
        )
