"""
Collaborator protocols consumed by the ingestion engine.

The engine is purely a producer into these calls. Implementations shared by
concurrent file workers (watch mode) must be safe for concurrent use.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

from csv_ingestion.domain.types import StatsAction, StatsKey


@runtime_checkable
class RecordSink(Protocol):
    """Downstream index-update target. May raise CrawlingAccessError."""

    def store(self, params: Mapping[str, Any], record: dict[str, Any]) -> None:
        ...


@runtime_checkable
class ScriptEvaluator(Protocol):
    """Evaluates one transform expression against a record context."""

    def evaluate(self, script_type: str, expression: str, context: Mapping[str, Any]) -> Any:
        """Return the value, or None to leave the target field unset."""
        ...


@runtime_checkable
class FailureRecorder(Protocol):
    """Persists one failed row so it can be located and fixed."""

    def store(self, job_config: Any, error_kind: str, url: str, error: BaseException) -> None:
        ...


@runtime_checkable
class StatsRecorder(Protocol):
    """Per-row statistics lifecycle: begin, record*, discard?, done."""

    def begin(self, key: StatsKey) -> None:
        ...

    def record(self, key: StatsKey, action: StatsAction) -> None:
        ...

    def discard(self, key: StatsKey) -> None:
        ...

    def done(self, key: StatsKey) -> None:
        ...
