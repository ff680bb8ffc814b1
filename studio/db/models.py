from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Student(Base):
    """Studio student. Only the fields the schedule needs are mapped here."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    enrollment_type: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class RecurringClassTemplate(Base):
    """Weekly recurring class template.

    Schema:
    - recurrence_pattern: JSON list of {"day": "monday", "time": "08:00"}
    - recurrence_start_date / recurrence_end_date: inclusive local dates, end is optional
    - timezone: IANA zone of the wall-clock times (NULL = studio zone)

    Editing or deleting a template never touches classes already generated from it.
    """

    __tablename__ = "recurring_class_templates"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid, index=True)
    student_id: Mapped[str | None] = mapped_column(String, ForeignKey("students.id", ondelete="SET NULL"), nullable=True)
    title: Mapped[str | None] = mapped_column(String, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    recurrence_pattern: Mapped[list] = mapped_column(JSON, nullable=False)
    recurrence_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    recurrence_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    timezone: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class ClassRecord(Base):
    """Concrete class occurrence.

    Schema:
    - start_time: UTC start instant (indexed, range-queried by the schedule views)
    - recurring_class_template_id: template that generated the class, NULL for ad-hoc classes

    No unique constraint on (template, start_time): generation is not idempotent,
    callers that need dedup insert with skip_existing.
    """

    __tablename__ = "classes"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    student_id: Mapped[str | None] = mapped_column(String, ForeignKey("students.id", ondelete="SET NULL"), nullable=True)
    recurring_class_template_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (Index("idx_classes_template_start_time", "recurring_class_template_id", "start_time"),)


class ClassAttendee(Base):
    """Student booked into a class."""

    __tablename__ = "class_attendees"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid, index=True)
    class_id: Mapped[str] = mapped_column(String, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id: Mapped[str] = mapped_column(String, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="scheduled")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (UniqueConstraint("class_id", "student_id", name="uq_class_attendee_student"),)


class AppSetting(Base):
    """Key/value settings editable from the dashboard (e.g. class_capacity)."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
