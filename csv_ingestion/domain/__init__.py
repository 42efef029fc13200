"""
csv_ingestion.domain -- Pure types and value objects for ingestion.

ZERO I/O apart from SystemClock.
"""

from csv_ingestion.domain.clock import Clock, DeterministicClock, SystemClock
from csv_ingestion.domain.params import DataStoreParams
from csv_ingestion.domain.types import (
    CandidateFile,
    DialectConfig,
    FileResult,
    FileState,
    JobResult,
    ProcessingOutcome,
    Row,
    StatsAction,
    StatsKey,
)

__all__ = [
    "CandidateFile",
    "Clock",
    "DataStoreParams",
    "DeterministicClock",
    "DialectConfig",
    "FileResult",
    "FileState",
    "JobResult",
    "ProcessingOutcome",
    "Row",
    "StatsAction",
    "StatsKey",
    "SystemClock",
]
