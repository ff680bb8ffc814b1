"""Scheduling contracts.

Pure data only: a RecurrencePattern describes a weekly template, a
ClassOccurrence is one concrete, dated, timed class. Behavior lives in the
generator, grid and capacity modules.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import StrEnum


class Weekday(StrEnum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def of(cls, d: date) -> Weekday:
        """Weekday of a calendar date."""
        return WEEKDAYS[d.weekday()]


# Indexed by date.weekday() (Monday == 0)
WEEKDAYS: tuple[Weekday, ...] = tuple(Weekday)


@dataclass(frozen=True)
class RecurrencePattern:
    """Weekly recurring class template.

    Attributes:
        id: Template identifier (None until persisted)
        title: Display label; may be empty when student_ref is set
        day_schedule: Local start time per weekday; weekdays without an entry are skipped
        duration_minutes: Duration of every generated class
        start_date: First date considered (inclusive)
        end_date: Last date considered (inclusive); None means open-ended
        student_ref: Optional student the classes belong to
        notes: Free text copied onto generated classes
        timezone: IANA zone of the wall-clock times; None means the studio zone
    """

    id: str | None
    title: str | None
    day_schedule: Mapping[Weekday, time]
    duration_minutes: int
    start_date: date
    end_date: date | None = None
    student_ref: str | None = None
    notes: str | None = None
    timezone: str | None = None


@dataclass(frozen=True)
class ClassOccurrence:
    """A single concrete class.

    attendee_count and attendee_names are owned by the attendance records;
    they are filled in by range queries and never written back.
    """

    id: str | None
    pattern_ref: str | None
    title: str
    start_instant: datetime
    duration_minutes: int
    notes: str | None = None
    student_ref: str | None = None
    attendee_count: int = 0
    attendee_names: tuple[str, ...] = field(default_factory=tuple)

    @property
    def end_instant(self) -> datetime:
        return self.start_instant + timedelta(minutes=self.duration_minutes)
