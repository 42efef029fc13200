"""
Structured JSON logging for the CSV ingestion connector.

Each record is written as one JSON object per line:

    {"ts": "...", "level": "WARNING", "logger": "csv_ingestion.services.pipeline",
     "message": "record_failed", "job_id": "nightly", "file_path": "/in/a.csv",
     "stats_key": "/in/a.csv#7", "line_number": 7, "exc_code": "...", ...}

Messages are snake_case event names; everything else travels in ``extra``.

Scope fields come from LogContext. The engine binds ``job_id`` for a run,
the pipeline binds ``file_path`` per file and ``stats_key`` per row, so any
line logged while a row is in flight (including by collaborators) can be
correlated with the row's stats entry and failure record. The scope lives
in a ContextVar: worker threads started through contextvars.copy_context()
see the scope of the thread that submitted them.
"""

__all__ = [
    "SCOPE_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from csv_ingestion.exceptions import CsvIngestionError

LOGGER_NAMESPACE = "csv_ingestion"

SCOPE_FIELDS: tuple[str, ...] = ("job_id", "file_path", "stats_key")

_EMPTY_SCOPE: Mapping[str, str] = MappingProxyType({})
_scope: ContextVar[Mapping[str, str]] = ContextVar("csv_ingestion_log_scope", default=_EMPTY_SCOPE)


class LogContext:
    """Job/file/row scope attached to every log line."""

    @staticmethod
    def _merged(fields: dict[str, str | None]) -> Mapping[str, str]:
        unknown = sorted(set(fields) - set(SCOPE_FIELDS))
        if unknown:
            raise TypeError(f"Unknown log scope field(s): {', '.join(unknown)}")
        scope = dict(_scope.get())
        scope.update({name: value for name, value in fields.items() if value is not None})
        return MappingProxyType(scope)

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set scope fields for the rest of the current context. None is ignored."""
        _scope.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        scope = _scope.get()
        return {name: scope[name] for name in SCOPE_FIELDS if name in scope}

    @classmethod
    def clear(cls) -> None:
        _scope.set(_EMPTY_SCOPE)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[None]:
        """Narrow the scope for a block; the previous scope is restored on exit."""
        token = _scope.set(cls._merged(fields))
        try:
            yield
        finally:
            _scope.reset(token)


# LogRecord attributes that are not caller-supplied extras
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    # Path, StatsKey, exceptions and the like log as their string form
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    if isinstance(exc, CsvIngestionError):
        fields["exc_code"] = exc.code
        for name, value in vars(exc).items():
            if not name.startswith("_"):
                fields[f"exc_{name}"] = value
    cause = exc.__cause__
    if cause is not None:
        fields["exc_cause"] = f"{type(cause).__name__}: {cause}"
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: base fields, scope, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default, ensure_ascii=False)


def get_logger(name: str) -> logging.Logger:
    """Logger for a connector module, e.g. ``get_logger("services.pipeline")``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


# Marks the handler installed by configure_logging()
_OWNED_HANDLER = "_csv_ingestion_owned"
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> logging.Handler:
    """Install the JSON handler on the connector's logger namespace.

    Idempotent: when a handler was already installed it is returned as is
    and the arguments are ignored.
    """
    with _lock:
        namespace = logging.getLogger(LOGGER_NAMESPACE)
        for existing in namespace.handlers:
            if getattr(existing, _OWNED_HANDLER, False):
                return existing

        if handler is None:
            handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        setattr(handler, _OWNED_HANDLER, True)

        namespace.setLevel(level)
        namespace.propagate = False
        namespace.addHandler(handler)
        return handler


def reset_logging() -> None:
    """Remove the installed handler and restore propagation. For tests."""
    with _lock:
        namespace = logging.getLogger(LOGGER_NAMESPACE)
        for existing in list(namespace.handlers):
            if getattr(existing, _OWNED_HANDLER, False):
                namespace.removeHandler(existing)
        namespace.setLevel(logging.NOTSET)
        namespace.propagate = True
