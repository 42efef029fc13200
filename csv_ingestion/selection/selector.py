"""
File selection: resolve job parameters into the ordered list of files to read.

Contract:
    ``files`` (comma-separated paths) wins over ``directories``
    (comma-separated, non-recursive). Both blank -> ConfigurationError.
    Unusable entries are skipped with a warning; an empty result is not an
    error. Files from one directory are ordered oldest first.

Selection policies decide whether an existing regular file qualifies:
    SuffixSelectionPolicy     .csv / .tsv, case-insensitive
    AgeGatedSelectionPolicy   suffix match AND older than a margin (watch mode)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from csv_ingestion.config.options import DIRECTORIES_PARAM, FILES_PARAM
from csv_ingestion.domain.clock import Clock, SystemClock
from csv_ingestion.domain.params import DataStoreParams
from csv_ingestion.domain.types import CandidateFile
from csv_ingestion.exceptions import ConfigurationError
from csv_ingestion.logging_config import get_logger

logger = get_logger("selection.selector")

ACCEPTED_SUFFIXES: tuple[str, ...] = (".csv", ".tsv")


@runtime_checkable
class FileSelectionPolicy(Protocol):
    """Decides whether an existing regular file should be ingested."""

    def accepts(self, candidate: CandidateFile) -> bool:
        ...


class SuffixSelectionPolicy:
    """Accept files whose name ends with an accepted suffix (case-insensitive)."""

    def accepts(self, candidate: CandidateFile) -> bool:
        return candidate.path.name.lower().endswith(ACCEPTED_SUFFIXES)


class AgeGatedSelectionPolicy:
    """Accept only files untouched for strictly longer than ``margin_ms``.

    Keeps watch mode from consuming a file a producer is still writing.
    """

    def __init__(
        self,
        margin_ms: int,
        clock: Clock | None = None,
        base: FileSelectionPolicy | None = None,
    ):
        self._margin = timedelta(milliseconds=margin_ms)
        self._clock = clock or SystemClock()
        self._base = base or SuffixSelectionPolicy()

    def accepts(self, candidate: CandidateFile) -> bool:
        if not self._base.accepts(candidate):
            return False
        return self._clock.now() - candidate.modified_at > self._margin


def _candidate(path: Path) -> CandidateFile:
    seconds, nanos = divmod(path.stat().st_mtime_ns, 1_000_000_000)
    modified_at = datetime.fromtimestamp(seconds, tz=timezone.utc) + timedelta(
        microseconds=nanos // 1_000
    )
    return CandidateFile(path=path.absolute(), modified_at=modified_at)


def _split(value: str) -> list[str]:
    return [p.strip() for p in value.split(",") if p.strip()]


class FileSelector:
    """Produce the ordered list of candidate files for one job."""

    def __init__(self, policy: FileSelectionPolicy | None = None):
        self._policy = policy or SuffixSelectionPolicy()

    def select(self, params: DataStoreParams) -> list[CandidateFile]:
        """
        Raises:
            ConfigurationError: if both ``files`` and ``directories`` are blank.
        """
        files = (params.get_as_string(FILES_PARAM) or "").strip()
        if files:
            logger.info("selecting_files", extra={FILES_PARAM: files})
            selected = self._select_files(_split(files))
            source = files
        else:
            directories = (params.get_as_string(DIRECTORIES_PARAM) or "").strip()
            if not directories:
                raise ConfigurationError(
                    f"{FILES_PARAM} and {DIRECTORIES_PARAM} are blank.",
                    keys=(FILES_PARAM, DIRECTORIES_PARAM),
                )
            logger.info("selecting_directories", extra={DIRECTORIES_PARAM: directories})
            selected = []
            for directory in _split(directories):
                selected.extend(self._select_directory(Path(directory)))
            source = directories

        if not selected:
            logger.debug("no_csv_files", extra={"source": source})
        return selected

    @staticmethod
    def _stat(path: Path) -> CandidateFile | None:
        try:
            return _candidate(path)
        except FileNotFoundError:
            # Deleted between listing and stat, e.g. by another consumer
            logger.warning("file_vanished", extra={"path": str(path)})
            return None

    def _select_files(self, paths: list[str]) -> list[CandidateFile]:
        selected: list[CandidateFile] = []
        for raw in paths:
            path = Path(raw)
            if not path.is_file():
                logger.warning("file_not_found", extra={"path": raw})
                continue
            candidate = self._stat(path)
            if candidate is None:
                continue
            if self._policy.accepts(candidate):
                selected.append(candidate)
            else:
                logger.warning("file_not_accepted", extra={"path": raw})
        return selected

    def _select_directory(self, directory: Path) -> list[CandidateFile]:
        if not directory.is_dir():
            logger.warning("not_a_directory", extra={"path": str(directory)})
            return []
        accepted: list[CandidateFile] = []
        for entry in sorted(directory.iterdir()):
            if not entry.is_file():
                continue
            candidate = self._stat(entry)
            if candidate is not None and self._policy.accepts(candidate):
                accepted.append(candidate)
        # Stable: equal timestamps keep name order
        accepted.sort(key=lambda c: c.modified_at)
        return accepted
