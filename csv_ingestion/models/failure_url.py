"""
Failure URL ORM model.

One row per (config_name, url): the latest error for a source line that
could not be ingested, and how many times it has failed.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from csv_ingestion.db.base import TrackedBase


class FailureUrlModel(TrackedBase):
    """Persisted failure of one record."""

    __tablename__ = "failure_urls"

    __table_args__ = (
        UniqueConstraint("config_name", "url", name="uq_failure_urls_config_url"),
    )

    config_name: Mapped[str] = mapped_column(String(200), nullable=False)
    url: Mapped[str] = mapped_column(String(4000), nullable=False)
    error_name: Mapped[str] = mapped_column(String(500), nullable=False)
    error_log: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    thread_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    last_access_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
