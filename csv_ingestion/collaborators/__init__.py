"""Collaborator protocols and in-process implementations."""

from csv_ingestion.collaborators.evaluator import FieldScriptEvaluator
from csv_ingestion.collaborators.memory import (
    InMemoryFailureRecorder,
    InMemoryRecordSink,
    InMemoryStatsRecorder,
    SynchronizedRecordSink,
)
from csv_ingestion.collaborators.protocols import (
    FailureRecorder,
    RecordSink,
    ScriptEvaluator,
    StatsRecorder,
)

__all__ = [
    "FailureRecorder",
    "FieldScriptEvaluator",
    "InMemoryFailureRecorder",
    "InMemoryRecordSink",
    "InMemoryStatsRecorder",
    "RecordSink",
    "ScriptEvaluator",
    "StatsRecorder",
    "SynchronizedRecordSink",
]
