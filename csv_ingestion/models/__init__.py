"""ORM models."""

from csv_ingestion.models.failure_url import FailureUrlModel

__all__ = [
    "FailureUrlModel",
]
