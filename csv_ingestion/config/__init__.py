"""Job configuration: YAML job definitions and tolerant option parsing."""

from csv_ingestion.config.loader import JobConfig, load_job_config, parse_job_config
from csv_ingestion.config.options import (
    IngestionSettings,
    build_dialect_config,
    resolve_settings,
)

__all__ = [
    "IngestionSettings",
    "JobConfig",
    "build_dialect_config",
    "load_job_config",
    "parse_job_config",
    "resolve_settings",
]
