"""Canonical week-window helpers for the schedule views.

Week boundaries are Monday-Sunday (ISO week).
"""

from collections.abc import Iterator
from datetime import date, timedelta


def week_start(d: date) -> date:
    """Return Monday of the calendar week containing d."""
    return d - timedelta(days=d.weekday())


def week_end(d: date) -> date:
    """Return Sunday of the calendar week containing d."""
    return week_start(d) + timedelta(days=6)


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end, both inclusive. Empty when start > end."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
