"""Recurrence pattern validation.

validate_pattern() is called before any generation so malformed templates
never produce occurrences.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import time

from studio.schedule.errors import InvalidTimeError, ValidationError
from studio.schedule.models import RecurrencePattern, Weekday
from studio.utils.timezone import parse_time_of_day

DEFAULT_STUDENT_CLASS_TITLE = "Student class"


def validate_pattern(pattern: RecurrencePattern) -> RecurrencePattern:
    """Check pattern invariants.

    Rules:
        - day_schedule is non-empty and keyed by Weekday
        - duration_minutes is a positive integer
        - end_date, when present, is not before start_date
        - a title is present unless the pattern is bound to a student

    Returns:
        The same pattern, for chaining

    Raises:
        ValidationError: Listing every violated rule
    """
    details: list[str] = []

    if not pattern.day_schedule:
        details.append("day_schedule must contain at least one weekday")
    else:
        for day, start in pattern.day_schedule.items():
            if not isinstance(day, Weekday):
                details.append(f"unknown weekday {day!r}")
            if not isinstance(start, time):
                details.append(f"start time for {day} must be a time, got {start!r}")
            elif start.microsecond or start.tzinfo is not None:
                details.append(f"start time for {day} must be a naive time with whole seconds, got {start!r}")

    if isinstance(pattern.duration_minutes, bool) or not isinstance(pattern.duration_minutes, int) or pattern.duration_minutes <= 0:
        details.append(f"duration_minutes must be a positive integer, got {pattern.duration_minutes!r}")

    if pattern.end_date is not None and pattern.end_date < pattern.start_date:
        details.append(f"end_date {pattern.end_date.isoformat()} is before start_date {pattern.start_date.isoformat()}")

    if not pattern.student_ref and not (pattern.title and pattern.title.strip()):
        details.append("title is required when no student is selected")

    if details:
        raise ValidationError(details)
    return pattern


def coerce_day_schedule(raw: Mapping[str, str | time]) -> dict[Weekday, time]:
    """Build a day schedule from weekday names and "HH:MM" strings.

    Raises:
        ValidationError: On unknown weekday names or unparseable times
    """
    details: list[str] = []
    schedule: dict[Weekday, time] = {}
    for name, value in raw.items():
        try:
            day = Weekday(str(name).strip().lower())
        except ValueError:
            details.append(f"unknown weekday {name!r}")
            continue
        try:
            schedule[day] = parse_time_of_day(value)
        except InvalidTimeError as e:
            details.append(f"{day}: {e}")

    if details:
        raise ValidationError(details)
    return schedule


def validate_class(title: str | None, student_ref: str | None, duration_minutes: int) -> None:
    """Check a single ad-hoc class: positive duration, and a title unless bound to a student.

    Raises:
        ValidationError: Listing every violated rule
    """
    details: list[str] = []
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
        details.append(f"duration_minutes must be a positive integer, got {duration_minutes!r}")
    if not student_ref and not (title and title.strip()):
        details.append("title is required when no student is selected")
    if details:
        raise ValidationError(details)


def class_title(title: str | None, student_ref: str | None, student_name: str | None = None) -> str:
    """Display title of a class: student-bound classes take the student's name, the title is only a fallback."""
    if student_ref:
        return student_name or (title or "").strip() or DEFAULT_STUDENT_CLASS_TITLE
    return (title or "").strip()


def resolve_title(pattern: RecurrencePattern, student_name: str | None = None) -> str:
    """Display title for classes generated from a pattern."""
    return class_title(pattern.title, pattern.student_ref, student_name)
