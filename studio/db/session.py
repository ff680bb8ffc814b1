from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from studio.config.settings import settings
from studio.schedule.errors import ScheduleError, StoreError

# Lazy initialization to avoid import-time database connections
_engine: Engine | None = None
_SessionLocal: sessionmaker | None = None


def _get_engine() -> Engine:
    """Get or create the database engine (lazy initialization)."""
    global _engine
    if _engine is None:
        logger.info(f"Initializing database engine: {settings.database_url}")

        connect_args = {}
        if "sqlite" in settings.database_url.lower():
            connect_args = {"check_same_thread": False}
        else:
            connect_args = {"connect_timeout": 10, "application_name": "studio-schedule"}

        _engine = create_engine(
            settings.database_url,
            connect_args=connect_args,
            echo=False,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
        logger.info("Database engine initialized")
    return _engine


def _get_session_local() -> sessionmaker:
    """Get or create the session factory (lazy initialization)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_get_engine())
        logger.info("Database session factory initialized")
    return _SessionLocal


def init_db() -> None:
    """Create missing tables."""
    from studio.db.models import Base

    Base.metadata.create_all(bind=_get_engine())
    logger.info("Database tables verified")


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Transactional session scope: commit on success, rollback on any error.

    Scheduling errors (validation, time conversion) are expected outcomes and
    are rolled back without an error log; anything else is logged with its
    traceback before being re-raised. A failing commit surfaces as StoreError.
    """
    session = _get_session_local()()
    try:
        yield session
        try:
            session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to commit transaction: {e!r}") from e
    except Exception as e:
        session.rollback()
        if isinstance(e, ScheduleError) and not isinstance(e, StoreError):
            logger.debug(f"{type(e).__name__} in session, rolled back")
        else:
            logger.exception(f"Database session error, rolled back: {e!r}")
        raise
    finally:
        session.close()
