"""
Module: csv_ingestion.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope for the failure-URL store.
Architecture position: DB layer. May import from db/base.py only (create_tables
    imports models to register their tables).

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from csv_ingestion.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def init_engine_from_url(database_url: str, echo: bool = False, **engine_kwargs) -> Engine:
    """
    Initialize the SQLAlchemy engine.

    A second call replaces the first. Extra keyword arguments are passed to
    ``create_engine`` (pool sizing for server databases and the like).
    """
    global _engine, _SessionFactory

    _engine = create_engine(database_url, echo=echo, **engine_kwargs)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """Session factory for multi-threaded use; each worker opens its own session."""
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Transactional scope: commit on normal exit, roll back and re-raise on error.

    Usage:
        with session_scope() as session:
            session.add(entity)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create all tables of the registered models."""
    from csv_ingestion.db.base import Base
    import csv_ingestion.models  # noqa: F401  (registers tables)

    Base.metadata.create_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory. Useful for test cleanup."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None
    _SessionFactory = None


def _atexit_dispose() -> None:
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)
