"""Timezone utility functions for class scheduling.

Central helper for timezone operations:
- Resolve IANA zone identifiers (defaulting to the studio zone)
- Convert a local calendar date + wall-clock time into a UTC instant
- Render UTC instants back into a zone
"""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from studio.config.settings import settings
from studio.schedule.errors import InvalidTimeError, UnknownZoneError


def get_zone(zone_id: str | None = None) -> ZoneInfo:
    """Get ZoneInfo for an IANA identifier.

    Args:
        zone_id: IANA zone name (e.g. "America/Sao_Paulo"). None uses the studio zone.

    Returns:
        ZoneInfo object

    Raises:
        UnknownZoneError: If the identifier is not a known zone
    """
    name = zone_id or settings.studio_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise UnknownZoneError(f"Unknown timezone: {name!r}") from e


def parse_time_of_day(value: time | str) -> time:
    """Parse a wall-clock time given as datetime.time or "HH:MM" / "HH:MM:SS".

    Raises:
        InvalidTimeError: If the value is malformed or out of the 24-hour range
    """
    if isinstance(value, time):
        if value.tzinfo is not None:
            raise InvalidTimeError(f"Time of day must be naive, got {value!r}")
        return value

    parts = str(value).strip().split(":")
    if len(parts) not in (2, 3):
        raise InvalidTimeError(f"Invalid time of day: {value!r} (expected HH:MM)")
    try:
        numbers = [int(part) for part in parts]
        return time(*numbers)
    except ValueError as e:
        raise InvalidTimeError(f"Invalid time of day: {value!r}") from e


def format_time_of_day(value: time) -> str:
    """Inverse of parse_time_of_day(): "HH:MM", or "HH:MM:SS" when seconds are set."""
    return value.strftime("%H:%M:%S" if value.second else "%H:%M")


def to_instant(day: date, time_of_day: time | str, zone_id: str | None = None) -> datetime:
    """Convert a local date and wall-clock time in a zone into a UTC instant.

    The zone offset is resolved for that specific date, so the same wall-clock
    time maps to different UTC offsets across DST transitions.

    Args:
        day: Local calendar date
        time_of_day: Local wall-clock time (datetime.time or "HH:MM")
        zone_id: IANA zone identifier. None uses the studio zone.

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        InvalidTimeError: If the time is invalid or does not exist on that date (DST gap)
        UnknownZoneError: If the zone identifier is unknown
    """
    zone = get_zone(zone_id)
    wall_clock = parse_time_of_day(time_of_day)

    # fold=0 picks the earlier instant for ambiguous (repeated) wall-clock times
    local = datetime.combine(day, wall_clock, tzinfo=zone)
    instant = local.astimezone(timezone.utc)

    if instant.astimezone(zone).replace(tzinfo=None) != local.replace(tzinfo=None):
        raise InvalidTimeError(f"{day.isoformat()} {wall_clock.isoformat('minutes')} does not exist in {zone.key}")

    return instant


def to_local(instant: datetime, zone_id: str | None = None) -> datetime:
    """Render an instant in the given zone (studio zone by default)."""
    return to_utc(instant).astimezone(get_zone(zone_id))


def to_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC.

    Args:
        dt: Datetime (timezone-aware or naive)

    Returns:
        Datetime in UTC timezone
    """
    if dt.tzinfo is None:
        # Assume UTC if naive
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def today_in_zone(zone_id: str | None = None) -> date:
    """Current calendar date in the given zone."""
    return datetime.now(get_zone(zone_id)).date()


def local_day_bounds(first_day: date, last_day: date, zone_id: str | None = None) -> tuple[datetime, datetime]:
    """UTC instants spanning local midnight of first_day to the end of last_day.

    Unlike to_instant(), a midnight that falls in a DST gap is not an error here:
    the bounds only need to enclose the days.
    """
    zone = get_zone(zone_id)
    start = datetime.combine(first_day, time.min, tzinfo=zone)
    end = datetime.combine(last_day, time.max, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
