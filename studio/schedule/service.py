"""Schedule service.

Request-layer orchestration over the scheduling core:
- create a recurring template and materialize its first horizon
- schedule single ad-hoc classes
- build week/day grid views with capacity tiers
- roster and attendance status changes, broadcast on the service's AttendanceChannel

Each write runs in a single get_session() block, which is what keeps
generate-and-insert for one template from interleaving with another request.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, time

from loguru import logger

from studio.db.session import get_session
from studio.schedule.attendance import Attendee, AttendanceChannel, AttendanceStatus
from studio.schedule.capacity import CapacityTier, is_full, occupancy_label
from studio.schedule.errors import NotFoundError
from studio.schedule.generator import OccurrenceGenerator
from studio.schedule.grid import HourRange, ScheduleGrid, SlotCell, aggregate, week_window
from studio.schedule.models import ClassOccurrence, RecurrencePattern
from studio.schedule.store import SqlRecordStore
from studio.schedule.validation import class_title, validate_class, validate_pattern
from studio.utils.timezone import local_day_bounds, to_instant


@dataclass(frozen=True)
class SlotView:
    """Presentation state of one grid cell."""

    day: date
    hour: int
    count: int
    tier: CapacityTier | None
    primary: ClassOccurrence | None
    occupancy: str | None
    full: bool = False


@dataclass(frozen=True)
class ScheduleView:
    window_start: date
    window_end: date
    capacity: int
    hours: tuple[int, ...]
    slots: list[SlotView]
    off_grid: list[ClassOccurrence]


@dataclass(frozen=True)
class CreatedPattern:
    pattern: RecurrencePattern
    occurrences: list[ClassOccurrence]


def _slot_view(cell: SlotCell, capacity: int) -> SlotView:
    primary = cell.primary
    return SlotView(
        day=cell.day,
        hour=cell.hour,
        count=cell.count,
        tier=cell.tier(capacity),
        primary=primary,
        occupancy=occupancy_label(primary.attendee_count, capacity) if primary else None,
        full=is_full(primary.attendee_count, capacity) if primary else False,
    )


def build_view(grid: ScheduleGrid, capacity: int) -> ScheduleView:
    """Annotate every grid cell with its tier and occupancy label."""
    slots = [_slot_view(cell, capacity) for _, row in grid.rows() for cell in row]
    return ScheduleView(
        window_start=grid.days[0],
        window_end=grid.days[-1],
        capacity=capacity,
        hours=grid.hours,
        slots=slots,
        off_grid=list(grid.off_grid),
    )


class ScheduleService:
    def __init__(
        self,
        generator: OccurrenceGenerator | None = None,
        channel: AttendanceChannel | None = None,
        zone_id: str | None = None,
    ):
        self.generator = generator or OccurrenceGenerator()
        self.channel = channel or AttendanceChannel()
        self.zone_id = zone_id

    def create_pattern(self, pattern: RecurrencePattern, today: date | None = None) -> CreatedPattern:
        """Save a template and materialize its occurrences for the default horizon.

        The template and its classes are written in one transaction: a
        conversion or store failure leaves neither behind.
        """
        validate_pattern(pattern)
        if pattern.timezone is None and self.zone_id is not None:
            pattern = replace(pattern, timezone=self.zone_id)

        with get_session() as session:
            store = SqlRecordStore(session)
            student_name = store.student_name(pattern.student_ref)
            saved = store.save_pattern(pattern)
            occurrences = self.generator.generate(saved, today=today, student_name=student_name)
            inserted = store.bulk_insert(occurrences)

        logger.info("[SCHEDULE] Created recurring template", pattern_id=saved.id, classes=len(inserted))
        return CreatedPattern(pattern=saved, occurrences=inserted)

    def create_class(
        self,
        title: str | None,
        day: date,
        start_time: time | str,
        duration_minutes: int,
        student_ref: str | None = None,
        notes: str | None = None,
        zone_id: str | None = None,
    ) -> ClassOccurrence:
        """Schedule a single ad-hoc class that belongs to no recurring template.

        Raises:
            ValidationError: If the duration is not positive or the title is missing
            TimeConversionError: If the local start cannot be converted
        """
        validate_class(title, student_ref, duration_minutes)
        start_instant = to_instant(day, start_time, zone_id or self.zone_id)

        with get_session() as session:
            store = SqlRecordStore(session)
            occurrence = ClassOccurrence(
                id=None,
                pattern_ref=None,
                title=class_title(title, student_ref, store.student_name(student_ref)),
                start_instant=start_instant,
                duration_minutes=duration_minutes,
                notes=notes,
                student_ref=student_ref,
            )
            [created] = store.bulk_insert([occurrence])

        logger.info("[SCHEDULE] Created single class", class_id=created.id, start=created.start_instant.isoformat())
        return created

    def list_patterns(self) -> list[RecurrencePattern]:
        with get_session() as session:
            return SqlRecordStore(session).list_patterns()

    def schedule_view(self, window_start: date, window_end: date, hour_range: HourRange | None = None) -> ScheduleView:
        """Grid view of [window_start, window_end] in the studio zone."""
        range_start, range_end = local_day_bounds(window_start, window_end, self.zone_id)

        with get_session() as session:
            store = SqlRecordStore(session)
            occurrences = store.query_range(range_start, range_end)
            capacity = store.class_capacity()

        grid = aggregate(occurrences, window_start, window_end, hour_range, self.zone_id)
        if grid.off_grid:
            logger.debug("[SCHEDULE] Classes outside displayed hours", count=len(grid.off_grid))
        return build_view(grid, capacity)

    def week_view(self, day: date, hour_range: HourRange | None = None) -> ScheduleView:
        start, end = week_window(day)
        return self.schedule_view(start, end, hour_range)

    def day_view(self, day: date, hour_range: HourRange | None = None) -> ScheduleView:
        return self.schedule_view(day, day, hour_range)

    def list_attendees(self, class_id: str) -> list[Attendee]:
        with get_session() as session:
            store = SqlRecordStore(session)
            if store.get_class(class_id) is None:
                raise NotFoundError(f"Class {class_id} not found")
            return store.list_attendees(class_id)

    def add_attendee(self, class_id: str, student_id: str, displace_attendee_id: str | None = None) -> list[Attendee]:
        with get_session() as session:
            roster = SqlRecordStore(session).add_attendee(class_id, student_id, displace_attendee_id)
        self.channel.emit(class_id, roster)
        return roster

    def remove_attendee(self, class_id: str, attendee_id: str) -> list[Attendee]:
        with get_session() as session:
            roster = SqlRecordStore(session).remove_attendee(attendee_id)
        self.channel.emit(class_id, roster)
        return roster

    def update_attendee_status(self, class_id: str, attendee_id: str, status: AttendanceStatus) -> list[Attendee]:
        with get_session() as session:
            roster = SqlRecordStore(session).update_attendee_status(class_id, attendee_id, status)
        self.channel.emit(class_id, roster)
        return roster
