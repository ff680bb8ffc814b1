"""Tests for the transactional session scope."""

from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from studio.db.models import Student
from studio.db.session import get_session
from studio.schedule.errors import StoreError, ValidationError
from studio.schedule.jobs import regenerate_open_patterns
from studio.schedule.store import SqlRecordStore


def _commit_failure() -> OperationalError:
    return OperationalError("COMMIT", {}, Exception("server closed the connection unexpectedly"))


class TestGetSession:
    def test_commits_on_success(self, db_session):
        with get_session() as session:
            session.add(Student(name="Ana"))

        assert db_session.execute(select(Student.name)).scalars().all() == ["Ana"]

    def test_rolls_back_on_error(self, db_session):
        with pytest.raises(ValidationError):
            with get_session() as session:
                session.add(Student(name="Ana"))
                session.flush()
                raise ValidationError(["bad input"])

        assert db_session.execute(select(Student.name)).scalars().all() == []

    def test_commit_failure_raises_store_error(self, db_session):
        with patch.object(Session, "commit", side_effect=_commit_failure()):
            with pytest.raises(StoreError) as exc_info:
                with get_session() as session:
                    session.add(Student(name="Ana"))

        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert db_session.execute(select(Student.name)).scalars().all() == []


class TestRegenerationCommitFailure:
    def test_failed_commit_skips_only_that_template(self, db_session, make_pattern):
        store = SqlRecordStore(db_session)
        store.save_pattern(make_pattern(id=None, title="First"))
        store.save_pattern(make_pattern(id=None, title="Second"))
        db_session.commit()

        # listing succeeds, the first template's commit fails, the second's succeeds
        with patch.object(Session, "commit", side_effect=[None, _commit_failure(), None]):
            result = regenerate_open_patterns(today=date(2024, 1, 1), horizon_days=7)

        assert len(result.failed_pattern_ids) == 1
        assert result.patterns_processed == 1
