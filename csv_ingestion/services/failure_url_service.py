"""
FailureUrlService -- SQLAlchemy-backed failure recorder.

Contract:
    ``store()`` upserts one FailureUrlModel per (job name, url): a new row
    starts with ``error_count == 1``; a repeat failure increments the count
    and replaces error name, log and access time. An insert that loses a race
    on the (job name, url) unique key is retried once as an update.

Each call opens and commits its own session from the injected factory, so
one instance can be shared by concurrent file workers. Database errors
propagate; the pipeline treats them as fatal for the current file.
"""

from __future__ import annotations

import threading
import traceback
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from csv_ingestion.domain.clock import Clock, SystemClock
from csv_ingestion.logging_config import get_logger
from csv_ingestion.models.failure_url import FailureUrlModel

logger = get_logger("services.failure_url")

MAX_ERROR_LOG_LENGTH = 10_000


def _error_log(error: BaseException) -> str:
    text = "".join(traceback.format_exception(error))
    return text[:MAX_ERROR_LOG_LENGTH]


class FailureUrlService:
    """Persists failed rows for later inspection."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def store(self, job_config: Any, error_kind: str, url: str, error: BaseException) -> None:
        config_name = getattr(job_config, "name", None) or str(job_config)
        try:
            error_count = self._upsert(config_name, error_kind, url, error)
        except IntegrityError:
            # A concurrent worker inserted the same (job, url) first; the
            # second attempt finds its row and takes the update path.
            logger.debug("failure_url_insert_conflict", extra={"url": url})
            error_count = self._upsert(config_name, error_kind, url, error)
        logger.info(
            "failure_url_stored",
            extra={"url": url, "error_name": error_kind, "error_count": error_count},
        )

    def _find(self, session: Session, config_name: str, url: str) -> FailureUrlModel | None:
        return session.execute(
            select(FailureUrlModel).where(
                FailureUrlModel.config_name == config_name,
                FailureUrlModel.url == url,
            )
        ).scalar_one_or_none()

    def _upsert(self, config_name: str, error_kind: str, url: str, error: BaseException) -> int:
        session = self._session_factory()
        try:
            model = self._find(session, config_name, url)
            now = self._clock.now()
            if model is None:
                model = FailureUrlModel(
                    config_name=config_name,
                    url=url,
                    error_name=error_kind,
                    error_log=_error_log(error),
                    error_count=1,
                    thread_name=threading.current_thread().name,
                    last_access_time=now,
                )
                session.add(model)
            else:
                model.error_name = error_kind
                model.error_log = _error_log(error)
                model.error_count += 1
                model.thread_name = threading.current_thread().name
                model.last_access_time = now
            session.commit()
            return model.error_count
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def list_failures(self, config_name: str) -> list[FailureUrlModel]:
        session = self._session_factory()
        try:
            return list(
                session.execute(
                    select(FailureUrlModel)
                    .where(FailureUrlModel.config_name == config_name)
                    .order_by(FailureUrlModel.url)
                ).scalars()
            )
        finally:
            session.close()
