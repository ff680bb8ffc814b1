"""Day x hour grid aggregation for the schedule views.

Occurrences are bucketed by the local date and the truncated local hour of
their start instant. Anything outside the displayed dates or hours is kept
in ScheduleGrid.off_grid rather than dropped.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date

from studio.config.settings import settings
from studio.schedule.capacity import CapacityTier, classify
from studio.schedule.models import ClassOccurrence
from studio.utils.calendar import iter_dates, week_end, week_start
from studio.utils.timezone import to_local

SlotKey = tuple[date, int]


@dataclass(frozen=True)
class HourRange:
    """Displayed hours, inclusive on both ends (7-20 shows 07:00 through 20:59)."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if not (0 <= self.start <= 23 and 0 <= self.end <= 23) or self.start > self.end:
            raise ValueError(f"Invalid hour range {self.start}-{self.end}")

    @property
    def hours(self) -> tuple[int, ...]:
        return tuple(range(self.start, self.end + 1))

    def __contains__(self, hour: object) -> bool:
        return isinstance(hour, int) and self.start <= hour <= self.end

    def __len__(self) -> int:
        return self.end - self.start + 1

    @classmethod
    def from_settings(cls) -> HourRange:
        return cls(settings.display_start_hour, settings.display_end_hour)


@dataclass(frozen=True)
class SlotCell:
    """One (date, hour) cell.

    occurrences is ordered by start instant; the first one is the primary
    occurrence shown in the cell, count still reflects every booking.
    """

    day: date
    hour: int
    occurrences: tuple[ClassOccurrence, ...] = ()

    @property
    def count(self) -> int:
        return len(self.occurrences)

    @property
    def is_empty(self) -> bool:
        return not self.occurrences

    @property
    def primary(self) -> ClassOccurrence | None:
        return self.occurrences[0] if self.occurrences else None

    @property
    def has_collision(self) -> bool:
        return len(self.occurrences) > 1

    def tier(self, capacity: int | None = None) -> CapacityTier | None:
        """Capacity tier of the primary occurrence; None for an empty cell."""
        if self.primary is None:
            return None
        return classify(self.primary.attendee_count, capacity)


@dataclass(frozen=True)
class ScheduleGrid:
    days: tuple[date, ...]
    hours: tuple[int, ...]
    cells: dict[SlotKey, SlotCell]
    off_grid: tuple[ClassOccurrence, ...] = field(default=())

    def cell(self, day: date, hour: int) -> SlotCell:
        return self.cells[(day, hour)]

    def rows(self) -> Iterator[tuple[int, list[SlotCell]]]:
        """Yield (hour, cells for each day) in display order."""
        for hour in self.hours:
            yield hour, [self.cells[(day, hour)] for day in self.days]

    def occupied(self) -> list[SlotCell]:
        return [cell for cell in self.cells.values() if not cell.is_empty]

    @property
    def total_on_grid(self) -> int:
        return sum(cell.count for cell in self.cells.values())


def aggregate(
    occurrences: Iterable[ClassOccurrence],
    window_start: date,
    window_end: date,
    hour_range: HourRange | None = None,
    zone_id: str | None = None,
) -> ScheduleGrid:
    """Bucket occurrences into a grid of window dates x displayed hours.

    Args:
        occurrences: Occurrences to place (any order)
        window_start: First displayed local date (inclusive)
        window_end: Last displayed local date (inclusive)
        hour_range: Displayed hours; defaults to the configured 07-20 range
        zone_id: Zone used to compute local date and hour; defaults to the studio zone

    Returns:
        ScheduleGrid with one cell per (date, hour), every cell present even when empty

    Raises:
        ValueError: If window_end is before window_start
        UnknownZoneError: If zone_id is unknown
    """
    if window_end < window_start:
        raise ValueError(f"window_end {window_end} is before window_start {window_start}")

    hour_range = hour_range or HourRange.from_settings()
    days = tuple(iter_dates(window_start, window_end))
    hours = hour_range.hours

    buckets: dict[SlotKey, list[ClassOccurrence]] = {(day, hour): [] for day in days for hour in hours}
    off_grid: list[ClassOccurrence] = []

    for occurrence in occurrences:
        local = to_local(occurrence.start_instant, zone_id)
        key = (local.date(), local.hour)
        bucket = buckets.get(key)
        if bucket is None:
            off_grid.append(occurrence)
            continue
        bucket.append(occurrence)

    # sorted() is stable, so equal start instants keep input order
    cells = {
        key: SlotCell(day=key[0], hour=key[1], occurrences=tuple(sorted(bucket, key=lambda o: o.start_instant)))
        for key, bucket in buckets.items()
    }
    return ScheduleGrid(days=days, hours=hours, cells=cells, off_grid=tuple(off_grid))


def week_window(day: date) -> tuple[date, date]:
    """Monday-Sunday window containing day."""
    return week_start(day), week_end(day)
