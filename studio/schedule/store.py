"""Record store for templates, classes and attendee counts.

RecordStore is the boundary the scheduling core depends on; SqlRecordStore
implements it on the studio database. All writes happen inside the caller's
session so one get_session() block is one transaction.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time
from typing import Protocol

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studio.config.settings import settings
from studio.db.models import AppSetting, ClassAttendee, ClassRecord, RecurringClassTemplate, Student
from studio.schedule.attendance import Attendee, AttendanceStatus
from studio.schedule.errors import NotFoundError, StoreError, ValidationError
from studio.schedule.models import ClassOccurrence, RecurrencePattern, Weekday
from studio.utils.timezone import format_time_of_day, parse_time_of_day, to_utc

CLASS_CAPACITY_KEY = "class_capacity"


class RecordStore(Protocol):
    def bulk_insert(self, occurrences: list[ClassOccurrence], skip_existing: bool = False) -> list[ClassOccurrence]: ...

    def query_range(self, window_start: datetime, window_end: datetime) -> list[ClassOccurrence]: ...


def _pattern_to_json(day_schedule: dict[Weekday, time]) -> list[dict[str, str]]:
    # Stored in weekday order so the JSON is stable across edits
    return [
        {"day": day.value, "time": format_time_of_day(day_schedule[day])}
        for day in Weekday
        if day in day_schedule
    ]


def _pattern_from_row(row: RecurringClassTemplate) -> RecurrencePattern:
    day_schedule = {Weekday(item["day"]): parse_time_of_day(item["time"]) for item in row.recurrence_pattern or []}
    return RecurrencePattern(
        id=row.id,
        title=row.title,
        day_schedule=day_schedule,
        duration_minutes=row.duration_minutes,
        start_date=row.recurrence_start_date,
        end_date=row.recurrence_end_date,
        student_ref=row.student_id,
        notes=row.notes,
        timezone=row.timezone,
    )


def _occurrence_from_row(row: ClassRecord, names: list[str] | None = None) -> ClassOccurrence:
    names = names or []
    return ClassOccurrence(
        id=row.id,
        pattern_ref=row.recurring_class_template_id,
        title=row.title,
        start_instant=to_utc(row.start_time),
        duration_minutes=row.duration_minutes,
        notes=row.notes,
        student_ref=row.student_id,
        attendee_count=len(names),
        attendee_names=tuple(sorted(names, key=str.casefold)),
    )


class SqlRecordStore:
    """SQLAlchemy-backed RecordStore.

    Any SQLAlchemyError is re-raised as StoreError; the store never retries.
    """

    def __init__(self, session: Session):
        self.session = session

    # ---- Occurrences ----

    def bulk_insert(self, occurrences: list[ClassOccurrence], skip_existing: bool = False) -> list[ClassOccurrence]:
        """Persist a batch of occurrences in the current transaction.

        Args:
            occurrences: Occurrences to insert (ids are assigned here)
            skip_existing: Skip occurrences whose (pattern_ref, start_instant)
                is already stored. Ad-hoc occurrences (no pattern_ref) are
                always inserted.

        Returns:
            The inserted occurrences with their new ids

        Raises:
            StoreError: If the batch cannot be written
        """
        if not occurrences:
            return []

        try:
            existing = self._existing_keys(occurrences) if skip_existing else set()
            rows: list[ClassRecord] = []
            for occurrence in occurrences:
                start = to_utc(occurrence.start_instant)
                if occurrence.pattern_ref is not None and (occurrence.pattern_ref, start) in existing:
                    continue
                rows.append(
                    ClassRecord(
                        title=occurrence.title,
                        start_time=start,
                        duration_minutes=occurrence.duration_minutes,
                        notes=occurrence.notes,
                        student_id=occurrence.student_ref,
                        recurring_class_template_id=occurrence.pattern_ref,
                    )
                )
            self.session.add_all(rows)
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"[STORE] Bulk insert failed: {e!r}")
            raise StoreError(f"Failed to insert {len(occurrences)} classes") from e

        skipped = len(occurrences) - len(rows)
        logger.info("[STORE] Inserted classes", inserted=len(rows), skipped=skipped)
        return [_occurrence_from_row(row) for row in rows]

    def _existing_keys(self, occurrences: list[ClassOccurrence]) -> set[tuple[str, datetime]]:
        pattern_refs = {o.pattern_ref for o in occurrences if o.pattern_ref is not None}
        if not pattern_refs:
            return set()
        starts = [to_utc(o.start_instant) for o in occurrences]
        rows = self.session.execute(
            select(ClassRecord.recurring_class_template_id, ClassRecord.start_time).where(
                ClassRecord.recurring_class_template_id.in_(pattern_refs),
                ClassRecord.start_time >= min(starts),
                ClassRecord.start_time <= max(starts),
            )
        ).all()
        return {(ref, to_utc(start)) for ref, start in rows}

    def query_range(self, window_start: datetime, window_end: datetime) -> list[ClassOccurrence]:
        """Occurrences starting within [window_start, window_end], with attendee counts.

        Raises:
            StoreError: If the query fails
        """
        try:
            stmt = (
                select(ClassRecord)
                .where(
                    ClassRecord.start_time >= to_utc(window_start),
                    ClassRecord.start_time <= to_utc(window_end),
                )
                .order_by(ClassRecord.start_time, ClassRecord.id)
            )
            records = list(self.session.execute(stmt).scalars().all())
            names = self._attendee_names([record.id for record in records])
        except SQLAlchemyError as e:
            logger.error(f"[STORE] Range query failed: {e!r}")
            raise StoreError("Failed to query classes") from e

        logger.debug("[STORE] Range query", window_start=window_start, window_end=window_end, count=len(records))
        return [_occurrence_from_row(record, names.get(record.id)) for record in records]

    def get_class(self, class_id: str) -> ClassOccurrence | None:
        try:
            record = self.session.get(ClassRecord, class_id)
            if record is None:
                return None
            names = self._attendee_names([record.id])
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load class {class_id}") from e
        return _occurrence_from_row(record, names.get(record.id))

    def _attendee_names(self, class_ids: list[str]) -> dict[str, list[str]]:
        if not class_ids:
            return {}
        rows = self.session.execute(
            select(ClassAttendee.class_id, Student.name)
            .join(Student, Student.id == ClassAttendee.student_id)
            .where(ClassAttendee.class_id.in_(class_ids))
        ).all()
        names: dict[str, list[str]] = defaultdict(list)
        for class_id, name in rows:
            names[class_id].append(name)
        return names

    # ---- Templates ----

    def save_pattern(self, pattern: RecurrencePattern) -> RecurrencePattern:
        """Insert a template and return the pattern with its new id."""
        row = RecurringClassTemplate(
            student_id=pattern.student_ref,
            title=pattern.title,
            duration_minutes=pattern.duration_minutes,
            notes=pattern.notes,
            recurrence_pattern=_pattern_to_json(dict(pattern.day_schedule)),
            recurrence_start_date=pattern.start_date,
            recurrence_end_date=pattern.end_date,
            timezone=pattern.timezone,
        )
        try:
            self.session.add(row)
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"[STORE] Template insert failed: {e!r}")
            raise StoreError("Failed to save recurring class template") from e
        return _pattern_from_row(row)

    def get_pattern(self, pattern_id: str) -> RecurrencePattern | None:
        try:
            row = self.session.get(RecurringClassTemplate, pattern_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load template {pattern_id}") from e
        return _pattern_from_row(row) if row else None

    def list_patterns(self, active_on: date | None = None) -> list[RecurrencePattern]:
        """All templates, or only those not ended before `active_on`."""
        stmt = select(RecurringClassTemplate).order_by(RecurringClassTemplate.created_at, RecurringClassTemplate.id)
        if active_on is not None:
            stmt = stmt.where(
                (RecurringClassTemplate.recurrence_end_date.is_(None))
                | (RecurringClassTemplate.recurrence_end_date >= active_on)
            )
        try:
            rows = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            raise StoreError("Failed to list recurring class templates") from e
        return [_pattern_from_row(row) for row in rows]

    # ---- Students & settings ----

    def student_name(self, student_id: str | None) -> str | None:
        if not student_id:
            return None
        try:
            student = self.session.get(Student, student_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load student {student_id}") from e
        return student.name if student else None

    def class_capacity(self) -> int:
        """Capacity from app_settings, falling back to CLASS_CAPACITY."""
        try:
            row = self.session.get(AppSetting, CLASS_CAPACITY_KEY)
        except SQLAlchemyError as e:
            raise StoreError("Failed to load app settings") from e
        if row is None:
            return settings.class_capacity
        try:
            capacity = int(row.value)
        except ValueError:
            logger.warning(f"[STORE] Invalid class_capacity setting {row.value!r}, using {settings.class_capacity}")
            return settings.class_capacity
        return capacity if capacity > 0 else settings.class_capacity

    # ---- Attendance ----

    def list_attendees(self, class_id: str) -> list[Attendee]:
        """Roster of a class sorted by student name."""
        try:
            rows = self.session.execute(
                select(ClassAttendee, Student.name)
                .join(Student, Student.id == ClassAttendee.student_id)
                .where(ClassAttendee.class_id == class_id)
            ).all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load attendees of class {class_id}") from e
        attendees = [
            Attendee(
                id=attendee.id,
                class_id=attendee.class_id,
                student_ref=attendee.student_id,
                student_name=name,
                status=AttendanceStatus(attendee.status),
            )
            for attendee, name in rows
        ]
        return sorted(attendees, key=lambda a: a.student_name.casefold())

    def add_attendee(self, class_id: str, student_id: str, displace_attendee_id: str | None = None) -> list[Attendee]:
        """Book a student into a class, optionally removing another attendee first.

        Returns:
            The class roster after the change

        Raises:
            NotFoundError: If the class does not exist
            ValidationError: If the student is already booked into the class
        """
        try:
            if self.session.get(ClassRecord, class_id) is None:
                raise NotFoundError(f"Class {class_id} not found")
            booked = select(ClassAttendee.id).where(
                ClassAttendee.class_id == class_id,
                ClassAttendee.student_id == student_id,
            )
            if displace_attendee_id:
                booked = booked.where(ClassAttendee.id != displace_attendee_id)
            already_booked = self.session.execute(booked).first()
            if already_booked:
                raise ValidationError([f"student {student_id} is already booked into class {class_id}"])
            if displace_attendee_id:
                self.session.execute(delete(ClassAttendee).where(ClassAttendee.id == displace_attendee_id))
            self.session.add(ClassAttendee(class_id=class_id, student_id=student_id, status=AttendanceStatus.SCHEDULED.value))
            self.session.flush()
            return self.list_attendees(class_id)
        except SQLAlchemyError as e:
            logger.error(f"[STORE] Add attendee failed: {e!r}")
            raise StoreError(f"Failed to add student {student_id} to class {class_id}") from e

    def remove_attendee(self, attendee_id: str) -> list[Attendee]:
        """Remove an attendee; returns the remaining roster of that class."""
        try:
            attendee = self.session.get(ClassAttendee, attendee_id)
            if attendee is None:
                return []
            class_id = attendee.class_id
            self.session.delete(attendee)
            self.session.flush()
            return self.list_attendees(class_id)
        except SQLAlchemyError as e:
            logger.error(f"[STORE] Remove attendee failed: {e!r}")
            raise StoreError(f"Failed to remove attendee {attendee_id}") from e

    def update_attendee_status(self, class_id: str, attendee_id: str, status: AttendanceStatus) -> list[Attendee]:
        """Mark an attendee scheduled, present or absent.

        Returns:
            The class roster after the change

        Raises:
            NotFoundError: If the attendee is not booked into that class
        """
        try:
            attendee = self.session.get(ClassAttendee, attendee_id)
            if attendee is None or attendee.class_id != class_id:
                raise NotFoundError(f"Attendee {attendee_id} not found in class {class_id}")
            attendee.status = AttendanceStatus(status).value
            self.session.flush()
            return self.list_attendees(class_id)
        except SQLAlchemyError as e:
            logger.error(f"[STORE] Attendee status update failed: {e!r}")
            raise StoreError(f"Failed to update attendee {attendee_id}") from e
