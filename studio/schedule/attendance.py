"""Attendee-list change notifications.

An AttendanceChannel is owned by whoever creates it (normally the
ScheduleService) and lives as long as that owner. Subscribers register a
callback and get back a function that removes it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from loguru import logger


class AttendanceStatus(StrEnum):
    SCHEDULED = "scheduled"
    PRESENT = "present"
    ABSENT = "absent"


@dataclass(frozen=True)
class Attendee:
    id: str
    class_id: str
    student_ref: str
    student_name: str
    status: AttendanceStatus


AttendeeListener = Callable[[str, list[Attendee]], None]


class AttendanceChannel:
    """Broadcasts (class_id, attendees) after a roster change."""

    def __init__(self) -> None:
        self._listeners: list[AttendeeListener] = []

    def subscribe(self, listener: AttendeeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, class_id: str, attendees: list[Attendee]) -> None:
        # Copy so listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            listener(class_id, attendees)
        logger.debug("[ATTENDANCE] Roster change emitted", class_id=class_id, listeners=len(self._listeners))

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
