"""Errors raised by the recurring-class scheduling core.

Every error is scoped to a single generation, aggregation or store call;
none are retried inside the core.
"""


class ScheduleError(Exception):
    """Base exception for all scheduling errors."""

    pass


class ValidationError(ScheduleError):
    """Raised when a recurrence pattern or class violates its invariants.

    Attributes:
        details: Human-readable descriptions of each violated rule
    """

    def __init__(self, details: list[str]):
        self.details = details
        super().__init__(f"Invalid schedule input: {'; '.join(details)}")


class TimeConversionError(ScheduleError):
    """Base class for local-time to instant conversion failures."""

    pass


class InvalidTimeError(TimeConversionError):
    """Raised when a time of day is malformed, out of range, or does not exist in the zone on that date."""

    pass


class UnknownZoneError(TimeConversionError):
    """Raised when a zone identifier is not a known IANA zone."""

    pass


class StoreError(ScheduleError):
    """Raised when the record store fails to read or persist records."""

    pass


class NotFoundError(ScheduleError):
    """Raised when a class or attendee referenced by id does not exist."""

    pass
