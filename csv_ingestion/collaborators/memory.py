"""In-process collaborator implementations (tests, scripts, watch-mode sink wrapper)."""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass
from typing import Any, Mapping

from csv_ingestion.collaborators.protocols import RecordSink
from csv_ingestion.domain.types import StatsAction, StatsKey
from csv_ingestion.logging_config import get_logger

logger = get_logger("collaborators.memory")


class InMemoryRecordSink:
    """Collects stored documents in arrival order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.records: list[dict[str, Any]] = []
        self.commits = 0

    def store(self, params: Mapping[str, Any], record: dict[str, Any]) -> None:
        with self._lock:
            self.records.append(dict(record))

    def commit(self) -> None:
        with self._lock:
            self.commits += 1


class SynchronizedRecordSink:
    """Serializes ``store`` calls from concurrent file workers.

    ``commit()`` is the barrier watch mode calls once every file of a batch
    has been dispatched; it forwards to the wrapped sink's ``commit`` if any.
    """

    def __init__(self, inner: RecordSink):
        self._inner = inner
        self._lock = threading.Lock()
        self._stored = 0

    @property
    def stored(self) -> int:
        return self._stored

    def store(self, params: Mapping[str, Any], record: dict[str, Any]) -> None:
        with self._lock:
            self._inner.store(params, record)
            self._stored += 1

    def commit(self) -> None:
        with self._lock:
            commit = getattr(self._inner, "commit", None)
            if callable(commit):
                commit()
            logger.info("sink_committed", extra={"stored": self._stored})


class InMemoryStatsRecorder:
    """Thread-safe per-action counters plus begun/done/discarded key sets."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.actions: Counter[StatsAction] = Counter()
        self.begun: list[str] = []
        self.done_keys: list[str] = []
        self.discarded: list[str] = []
        self.urls: dict[str, str] = {}

    def begin(self, key: StatsKey) -> None:
        with self._lock:
            self.begun.append(key.key)

    def record(self, key: StatsKey, action: StatsAction) -> None:
        with self._lock:
            self.actions[action] += 1
            if key.url:
                self.urls[key.key] = key.url

    def discard(self, key: StatsKey) -> None:
        with self._lock:
            self.discarded.append(key.key)

    def done(self, key: StatsKey) -> None:
        with self._lock:
            self.done_keys.append(key.key)

    @property
    def in_progress(self) -> set[str]:
        with self._lock:
            return set(self.begun) - set(self.done_keys)


@dataclass(frozen=True)
class FailureEntry:
    job_name: str | None
    error_kind: str
    url: str
    error: BaseException


class InMemoryFailureRecorder:
    """Keeps failure entries in a list."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.entries: list[FailureEntry] = []

    def store(self, job_config: Any, error_kind: str, url: str, error: BaseException) -> None:
        with self._lock:
            self.entries.append(
                FailureEntry(
                    job_name=getattr(job_config, "name", None),
                    error_kind=error_kind,
                    url=url,
                    error=error,
                )
            )
