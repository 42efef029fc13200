"""
Pytest fixtures for the CSV ingestion test suite.

Provides:
- Structured logging configured once per session, LogContext cleared per test
- ``write_csv`` for building source files under ``tmp_path``
- Job/engine builders wired to in-memory collaborators
- A deterministic clock
"""

import json
import logging
import os
from datetime import datetime, timezone
from io import StringIO
from pathlib import Path
from typing import Any, Mapping

import pytest

from csv_ingestion.collaborators import (
    FieldScriptEvaluator,
    InMemoryFailureRecorder,
    InMemoryRecordSink,
    InMemoryStatsRecorder,
)
from csv_ingestion.config import JobConfig, resolve_settings
from csv_ingestion.domain import DataStoreParams, DeterministicClock
from csv_ingestion.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from csv_ingestion.services import IngestionPipeline


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture csv_ingestion logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "record_failed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("csv_ingestion")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Source files
# =============================================================================


BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def set_mtime(path: Path, when: datetime) -> None:
    """Set a file's modification time (nanosecond precision)."""
    ns = int(when.timestamp()) * 1_000_000_000 + when.microsecond * 1_000
    os.utime(path, ns=(ns, ns))


@pytest.fixture
def write_csv(tmp_path):
    """
    Write a source file under ``tmp_path`` and return its path.

    ``content`` is written verbatim (no newline translation).
    """

    def _write(
        name: str,
        content: str,
        *,
        encoding: str = "utf-8",
        modified_at: datetime | None = None,
        directory: Path | None = None,
    ) -> Path:
        target_dir = directory or tmp_path
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / name
        path.write_bytes(content.encode(encoding))
        if modified_at is not None:
            set_mtime(path, modified_at)
        return path

    return _write


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(BASE_TIME)


# =============================================================================
# Collaborators
# =============================================================================


class RecordingEvaluator(FieldScriptEvaluator):
    """FieldScriptEvaluator that keeps a copy of every context it was given."""

    def __init__(self) -> None:
        self.contexts: list[dict[str, Any]] = []
        self._last: Mapping[str, Any] | None = None

    def evaluate(self, script_type: str, expression: str, context: Mapping[str, Any]) -> Any:
        if context is not self._last:
            self._last = context
            self.contexts.append(dict(context))
        return super().evaluate(script_type, expression, context)


class ScriptedSink(InMemoryRecordSink):
    """Sink that raises a prepared error for chosen documents."""

    def __init__(self, errors: Mapping[str, BaseException] | None = None, key: str = "id"):
        super().__init__()
        self.errors = dict(errors or {})
        self.key = key
        self.params_seen: list[Mapping[str, Any]] = []

    def store(self, params: Mapping[str, Any], record: dict[str, Any]) -> None:
        self.params_seen.append(params)
        error = self.errors.get(record.get(self.key))
        if error is not None:
            raise error
        super().store(params, record)


@pytest.fixture
def make_job():
    def _make(
        params: Mapping[str, Any] | None = None,
        scripts: Mapping[str, str] | None = None,
        defaults: Mapping[str, Any] | None = None,
        name: str = "test-job",
    ) -> JobConfig:
        return JobConfig(
            name=name,
            params=DataStoreParams(params or {}),
            scripts=dict(scripts or {}),
            defaults=dict(defaults or {}),
        )

    return _make


@pytest.fixture
def sink() -> InMemoryRecordSink:
    return InMemoryRecordSink()


@pytest.fixture
def stats() -> InMemoryStatsRecorder:
    return InMemoryStatsRecorder()


@pytest.fixture
def failures() -> InMemoryFailureRecorder:
    return InMemoryFailureRecorder()


@pytest.fixture
def sleeps() -> list[float]:
    """Durations passed to the pipeline's sleep function."""
    return []


@pytest.fixture
def make_pipeline(sink, stats, failures, sleeps):
    def _make(job: JobConfig, **kwargs) -> IngestionPipeline:
        return IngestionPipeline(
            job,
            kwargs.pop("settings", None) or resolve_settings(job.params),
            kwargs.pop("sink", sink),
            kwargs.pop("evaluator", None) or FieldScriptEvaluator(),
            kwargs.pop("failure_recorder", failures),
            kwargs.pop("stats", stats),
            sleep=kwargs.pop("sleep", sleeps.append),
            **kwargs,
        )

    return _make


@pytest.fixture
def recording_evaluator() -> RecordingEvaluator:
    return RecordingEvaluator()


@pytest.fixture
def scripted_sink():
    """Factory for a sink that raises the mapped error for a document ``id``."""

    def _make(errors: Mapping[str, BaseException] | None = None) -> ScriptedSink:
        return ScriptedSink(errors)

    return _make
