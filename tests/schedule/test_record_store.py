"""Tests for the SQLAlchemy record store."""

from datetime import UTC, date, datetime, time
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from studio.db.models import AppSetting, ClassAttendee, RecurringClassTemplate, Student
from studio.schedule.attendance import AttendanceStatus
from studio.schedule.errors import NotFoundError, StoreError, ValidationError
from studio.schedule.generator import generate
from studio.schedule.models import ClassOccurrence, Weekday
from studio.schedule.store import SqlRecordStore

WINDOW_START = datetime(2024, 1, 1, 3, 0, tzinfo=UTC)
WINDOW_END = datetime(2024, 1, 15, 3, 0, tzinfo=UTC)


def _ad_hoc(start: datetime, title: str = "Trial class") -> ClassOccurrence:
    return ClassOccurrence(id=None, pattern_ref=None, title=title, start_instant=start, duration_minutes=60)


class TestBulkInsertAndQuery:
    def test_insert_assigns_ids_and_query_returns_them(self, db_session, make_pattern):
        store = SqlRecordStore(db_session)
        occurrences = generate(make_pattern(), horizon_end=date(2024, 1, 14))

        inserted = store.bulk_insert(occurrences)
        db_session.commit()

        assert len(inserted) == 4
        assert all(o.id for o in inserted)
        queried = store.query_range(WINDOW_START, WINDOW_END)
        assert [o.start_instant for o in queried] == [o.start_instant for o in occurrences]
        assert all(o.pattern_ref == "pattern-1" for o in queried)
        assert all(o.start_instant.tzinfo is not None for o in queried)

    def test_empty_batch(self, db_session):
        assert SqlRecordStore(db_session).bulk_insert([]) == []

    def test_query_range_is_inclusive(self, db_session):
        store = SqlRecordStore(db_session)
        store.bulk_insert([_ad_hoc(WINDOW_START), _ad_hoc(WINDOW_END), _ad_hoc(datetime(2024, 1, 16, tzinfo=UTC))])
        db_session.commit()

        assert len(store.query_range(WINDOW_START, WINDOW_END)) == 2

    def test_attendee_counts_and_sorted_names(self, db_session):
        store = SqlRecordStore(db_session)
        [occurrence] = store.bulk_insert([_ad_hoc(datetime(2024, 1, 2, 12, 0, tzinfo=UTC))])
        students = [Student(name=name) for name in ("carla", "Bruno", "Ana")]
        db_session.add_all(students)
        db_session.flush()
        db_session.add_all([ClassAttendee(class_id=occurrence.id, student_id=s.id) for s in students])
        db_session.commit()

        [queried] = store.query_range(WINDOW_START, WINDOW_END)
        assert queried.attendee_count == 3
        assert queried.attendee_names == ("Ana", "Bruno", "carla")

    def test_duplicates_inserted_without_skip_existing(self, db_session, make_pattern):
        store = SqlRecordStore(db_session)
        occurrences = generate(make_pattern(), horizon_end=date(2024, 1, 14))
        store.bulk_insert(occurrences)
        store.bulk_insert(occurrences)
        db_session.commit()

        assert len(store.query_range(WINDOW_START, WINDOW_END)) == 8

    def test_skip_existing_keys_on_pattern_and_start(self, db_session, make_pattern):
        store = SqlRecordStore(db_session)
        store.bulk_insert(generate(make_pattern(), horizon_end=date(2024, 1, 7)))
        db_session.commit()

        inserted = store.bulk_insert(generate(make_pattern(), horizon_end=date(2024, 1, 14)), skip_existing=True)
        db_session.commit()

        assert len(inserted) == 2
        assert len(store.query_range(WINDOW_START, WINDOW_END)) == 4

    def test_skip_existing_never_skips_ad_hoc(self, db_session):
        store = SqlRecordStore(db_session)
        start = datetime(2024, 1, 2, 12, 0, tzinfo=UTC)
        store.bulk_insert([_ad_hoc(start)])
        store.bulk_insert([_ad_hoc(start)], skip_existing=True)
        db_session.commit()

        assert len(store.query_range(WINDOW_START, WINDOW_END)) == 2

    def test_database_failure_raises_store_error(self, db_session):
        store = SqlRecordStore(db_session)
        with patch.object(db_session, "flush", side_effect=OperationalError("INSERT", {}, Exception("disk I/O error"))):
            with pytest.raises(StoreError):
                store.bulk_insert([_ad_hoc(WINDOW_START)])


class TestPatterns:
    def test_save_and_load_round_trip(self, db_session, make_pattern):
        store = SqlRecordStore(db_session)
        pattern = make_pattern(
            id=None,
            day_schedule={Weekday.FRIDAY: time(18, 30), Weekday.MONDAY: time(7, 0)},
            end_date=date(2024, 6, 30),
            notes="Advanced",
        )

        saved = store.save_pattern(pattern)
        db_session.commit()

        assert saved.id
        loaded = store.get_pattern(saved.id)
        assert loaded == saved
        assert dict(loaded.day_schedule) == {Weekday.MONDAY: time(7, 0), Weekday.FRIDAY: time(18, 30)}
        # Stored JSON follows weekday order regardless of input order
        row = db_session.get(RecurringClassTemplate, saved.id)
        assert row.recurrence_pattern == [{"day": "monday", "time": "07:00"}, {"day": "friday", "time": "18:30"}]

    def test_seconds_survive_round_trip(self, db_session, make_pattern):
        store = SqlRecordStore(db_session)
        saved = store.save_pattern(make_pattern(id=None, day_schedule={Weekday.MONDAY: time(8, 0, 30)}))
        db_session.commit()

        assert dict(store.get_pattern(saved.id).day_schedule) == {Weekday.MONDAY: time(8, 0, 30)}
        assert db_session.get(RecurringClassTemplate, saved.id).recurrence_pattern == [{"day": "monday", "time": "08:00:30"}]

    def test_get_missing_pattern(self, db_session):
        assert SqlRecordStore(db_session).get_pattern("missing") is None

    def test_list_active_patterns(self, db_session, make_pattern):
        store = SqlRecordStore(db_session)
        store.save_pattern(make_pattern(id=None, title="Ended", end_date=date(2024, 1, 31)))
        store.save_pattern(make_pattern(id=None, title="Open"))
        db_session.commit()

        assert len(store.list_patterns()) == 2
        assert [p.title for p in store.list_patterns(active_on=date(2024, 2, 1))] == ["Open"]


class TestSettingsAndStudents:
    def test_capacity_defaults_to_settings(self, db_session, studio_settings):
        assert SqlRecordStore(db_session).class_capacity() == 10

    def test_capacity_from_app_settings(self, db_session):
        db_session.add(AppSetting(key="class_capacity", value="12"))
        db_session.commit()
        assert SqlRecordStore(db_session).class_capacity() == 12

    def test_invalid_capacity_setting_falls_back(self, db_session):
        db_session.add(AppSetting(key="class_capacity", value="lots"))
        db_session.commit()
        assert SqlRecordStore(db_session).class_capacity() == 10

    def test_student_name(self, db_session):
        student = Student(name="Ana Souza")
        db_session.add(student)
        db_session.commit()

        store = SqlRecordStore(db_session)
        assert store.student_name(student.id) == "Ana Souza"
        assert store.student_name(None) is None
        assert store.student_name("missing") is None


class TestAttendees:
    def _class_with_students(self, db_session, *names):
        store = SqlRecordStore(db_session)
        [occurrence] = store.bulk_insert([_ad_hoc(datetime(2024, 1, 2, 12, 0, tzinfo=UTC))])
        students = [Student(name=name) for name in names]
        db_session.add_all(students)
        db_session.flush()
        return store, occurrence, students

    def test_add_attendee(self, db_session):
        store, occurrence, [ana] = self._class_with_students(db_session, "Ana")

        roster = store.add_attendee(occurrence.id, ana.id)

        assert [a.student_name for a in roster] == ["Ana"]
        assert roster[0].status == AttendanceStatus.SCHEDULED

    def test_add_attendee_displacing_another(self, db_session):
        store, occurrence, [ana, bruno] = self._class_with_students(db_session, "Ana", "Bruno")
        [ana_booking] = store.add_attendee(occurrence.id, ana.id)

        roster = store.add_attendee(occurrence.id, bruno.id, displace_attendee_id=ana_booking.id)

        assert [a.student_name for a in roster] == ["Bruno"]

    def test_remove_attendee(self, db_session):
        store, occurrence, [ana, bruno] = self._class_with_students(db_session, "Ana", "Bruno")
        store.add_attendee(occurrence.id, ana.id)
        roster = store.add_attendee(occurrence.id, bruno.id)
        bruno_booking = next(a for a in roster if a.student_name == "Bruno")

        assert [a.student_name for a in store.remove_attendee(bruno_booking.id)] == ["Ana"]
        assert store.remove_attendee("missing") == []

    def test_add_attendee_to_missing_class(self, db_session):
        student = Student(name="Ana")
        db_session.add(student)
        db_session.flush()

        with pytest.raises(NotFoundError):
            SqlRecordStore(db_session).add_attendee("missing", student.id)

    def test_double_booking_rejected(self, db_session):
        store, occurrence, [ana] = self._class_with_students(db_session, "Ana")
        store.add_attendee(occurrence.id, ana.id)

        with pytest.raises(ValidationError):
            store.add_attendee(occurrence.id, ana.id)

    def test_update_attendee_status(self, db_session):
        store, occurrence, [ana, bruno] = self._class_with_students(db_session, "Ana", "Bruno")
        store.add_attendee(occurrence.id, ana.id)
        roster = store.add_attendee(occurrence.id, bruno.id)
        ana_booking = next(a for a in roster if a.student_name == "Ana")

        roster = store.update_attendee_status(occurrence.id, ana_booking.id, AttendanceStatus.PRESENT)

        assert [(a.student_name, a.status) for a in roster] == [
            ("Ana", AttendanceStatus.PRESENT),
            ("Bruno", AttendanceStatus.SCHEDULED),
        ]

    def test_update_status_of_attendee_in_other_class(self, db_session):
        store, occurrence, [ana] = self._class_with_students(db_session, "Ana")
        [booking] = store.add_attendee(occurrence.id, ana.id)

        with pytest.raises(NotFoundError):
            store.update_attendee_status("other-class", booking.id, AttendanceStatus.ABSENT)
        with pytest.raises(NotFoundError):
            store.update_attendee_status(occurrence.id, "missing", AttendanceStatus.ABSENT)


class TestGetClass:
    def test_get_class_with_attendees(self, db_session):
        store = SqlRecordStore(db_session)
        [occurrence] = store.bulk_insert([_ad_hoc(datetime(2024, 1, 2, 12, 0, tzinfo=UTC))])
        student = Student(name="Ana")
        db_session.add(student)
        db_session.flush()
        store.add_attendee(occurrence.id, student.id)

        loaded = store.get_class(occurrence.id)

        assert loaded.pattern_ref is None
        assert loaded.attendee_names == ("Ana",)
        assert store.get_class("missing") is None
