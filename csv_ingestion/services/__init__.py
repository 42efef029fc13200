"""Ingestion services (pipeline, watch-mode lifecycle, engine, failure store)."""

from csv_ingestion.services.engine import CsvIngestionEngine
from csv_ingestion.services.failure_url_service import FailureUrlService
from csv_ingestion.services.failures import ClassifiedFailure, classify_failure
from csv_ingestion.services.lifecycle import (
    QUARANTINE_SUFFIX,
    DisposalPolicy,
    FileLifecycleManager,
)
from csv_ingestion.services.pipeline import IngestionPipeline, Liveness

__all__ = [
    "QUARANTINE_SUFFIX",
    "ClassifiedFailure",
    "CsvIngestionEngine",
    "DisposalPolicy",
    "FailureUrlService",
    "FileLifecycleManager",
    "IngestionPipeline",
    "Liveness",
    "classify_failure",
]
