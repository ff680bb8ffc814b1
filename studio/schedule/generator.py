"""Occurrence generation for recurring class templates.

Expands a RecurrencePattern into concrete ClassOccurrence records over a
bounded horizon. Generation is a pure computation: persisting the result is
the caller's job (RecordStore.bulk_insert), and nothing here checks for
previously materialized occurrences.
"""

from __future__ import annotations

from datetime import date, timedelta

from loguru import logger

from studio.config.settings import settings
from studio.schedule.errors import TimeConversionError
from studio.schedule.models import ClassOccurrence, RecurrencePattern, Weekday
from studio.schedule.validation import resolve_title, validate_pattern
from studio.utils.calendar import iter_dates
from studio.utils.timezone import to_instant, today_in_zone


def default_horizon_end(today: date, days: int | None = None) -> date:
    """Last date materialized for a generation pass started on `today`."""
    horizon_days = settings.generation_horizon_days if days is None else days
    return today + timedelta(days=horizon_days)


def effective_end(pattern: RecurrencePattern, horizon_end: date) -> date:
    """Earlier of the horizon end and the pattern's own end date."""
    if pattern.end_date is None:
        return horizon_end
    return min(horizon_end, pattern.end_date)


class OccurrenceGenerator:
    """Stateless, horizon-bounded occurrence generator.

    Open-ended patterns keep producing future classes only because generation
    is re-invoked later (see studio.schedule.jobs), never by this class itself.
    """

    def __init__(self, horizon_days: int | None = None):
        self.horizon_days = settings.generation_horizon_days if horizon_days is None else horizon_days

    def generate(
        self,
        pattern: RecurrencePattern,
        horizon_end: date | None = None,
        *,
        today: date | None = None,
        student_name: str | None = None,
    ) -> list[ClassOccurrence]:
        """Materialize the pattern's occurrences up to the horizon.

        Args:
            pattern: Recurrence pattern to expand
            horizon_end: Last date (inclusive) to materialize. Defaults to
                today + horizon_days.
            today: Invocation date used for the default horizon. Defaults to
                the current date in the pattern's zone.
            student_name: Name used as title for student-bound patterns

        Returns:
            Occurrences sorted by start_instant ascending. Empty when the
            pattern starts after the effective end.

        Raises:
            ValidationError: If the pattern is malformed
            InvalidTimeError: If any date's wall-clock time cannot be converted
            UnknownZoneError: If the pattern's zone is unknown
        """
        validate_pattern(pattern)

        if horizon_end is None:
            today = today or today_in_zone(pattern.timezone)
            horizon_end = default_horizon_end(today, self.horizon_days)
        last_day = effective_end(pattern, horizon_end)

        if pattern.start_date > last_day:
            logger.debug(
                "[SCHEDULE] Pattern starts after effective end, nothing to generate",
                pattern_id=pattern.id,
                start_date=pattern.start_date,
                effective_end=last_day,
            )
            return []

        title = resolve_title(pattern, student_name)
        occurrences: list[ClassOccurrence] = []

        for day in iter_dates(pattern.start_date, last_day):
            start_time = pattern.day_schedule.get(Weekday.of(day))
            if start_time is None:
                continue
            try:
                start_instant = to_instant(day, start_time, pattern.timezone)
            except TimeConversionError:
                logger.error(
                    "[SCHEDULE] Time conversion failed, aborting generation",
                    pattern_id=pattern.id,
                    day=day,
                    start_time=start_time,
                )
                raise
            occurrences.append(
                ClassOccurrence(
                    id=None,
                    pattern_ref=pattern.id,
                    title=title,
                    start_instant=start_instant,
                    duration_minutes=pattern.duration_minutes,
                    notes=pattern.notes,
                    student_ref=pattern.student_ref,
                )
            )

        occurrences.sort(key=lambda occurrence: occurrence.start_instant)
        logger.info(
            "[SCHEDULE] Generated occurrences",
            pattern_id=pattern.id,
            count=len(occurrences),
            start_date=pattern.start_date,
            effective_end=last_day,
        )
        return occurrences


def generate(
    pattern: RecurrencePattern,
    horizon_end: date | None = None,
    *,
    today: date | None = None,
    student_name: str | None = None,
) -> list[ClassOccurrence]:
    """Generate occurrences with the configured default horizon."""
    return OccurrenceGenerator().generate(pattern, horizon_end, today=today, student_name=student_name)
