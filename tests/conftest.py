"""Root conftest for all tests.

This file makes shared fixtures available across all test modules.
"""

from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from studio.config.settings import settings
from studio.schedule.models import RecurrencePattern, Weekday

STUDIO_ZONE = "America/Sao_Paulo"


@pytest.fixture(autouse=True)
def studio_settings(monkeypatch):
    """Pin the settings the scheduling core reads so tests don't depend on the host."""
    monkeypatch.setattr(settings, "studio_timezone", STUDIO_ZONE)
    monkeypatch.setattr(settings, "class_capacity", 10)
    monkeypatch.setattr(settings, "display_start_hour", 7)
    monkeypatch.setattr(settings, "display_end_hour", 20)
    monkeypatch.setattr(settings, "generation_horizon_days", 28)
    monkeypatch.setattr(settings, "regeneration_horizon_days", 60)
    return settings


@pytest.fixture(scope="function")
def db_session(monkeypatch):
    """
    Provides an in-memory SQLite DB for tests.

    This fixture:
    - Creates an isolated in-memory SQLite database per test (StaticPool so
      every session sees the same database)
    - Patches the session factory so get_session() uses it
    - Yields a session for tests that talk to the store directly
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    from studio.db.models import Base

    Base.metadata.create_all(engine)

    test_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    monkeypatch.setattr("studio.db.session._get_engine", lambda: engine)
    monkeypatch.setattr("studio.db.session._get_session_local", lambda: test_session_local)

    session = test_session_local()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def make_pattern():
    """Factory for valid recurrence patterns with overridable fields."""

    def _make(**overrides) -> RecurrencePattern:
        fields = {
            "id": "pattern-1",
            "title": "Pilates",
            "day_schedule": {Weekday.MONDAY: time(8, 0), Weekday.WEDNESDAY: time(8, 0)},
            "duration_minutes": 60,
            "start_date": date(2024, 1, 1),
            "end_date": None,
            "student_ref": None,
            "notes": None,
            "timezone": STUDIO_ZONE,
        }
        fields.update(overrides)
        return RecurrencePattern(**fields)

    return _make
