"""API request/response schemas for the schedule endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from studio.schedule.attendance import AttendanceStatus, Attendee
from studio.schedule.capacity import CapacityTier
from studio.schedule.models import ClassOccurrence, RecurrencePattern
from studio.schedule.service import ScheduleView, SlotView
from studio.utils.timezone import format_time_of_day


class RecurringPatternRequest(BaseModel):
    title: str | None = Field(default=None, description="Required unless student_id is set")
    student_id: str | None = None
    day_schedule: dict[str, str] = Field(description='Weekday -> "HH:MM", e.g. {"monday": "08:00"}')
    duration_minutes: int = Field(description="Duration of every generated class")
    start_date: date
    end_date: date | None = None
    notes: str | None = None
    timezone: str | None = Field(default=None, description="IANA zone; defaults to the studio zone")


class RecurringPatternResponse(BaseModel):
    id: str | None
    title: str | None
    student_id: str | None
    day_schedule: dict[str, str]
    duration_minutes: int
    start_date: date
    end_date: date | None
    notes: str | None
    timezone: str | None

    @classmethod
    def from_pattern(cls, pattern: RecurrencePattern) -> RecurringPatternResponse:
        return cls(
            id=pattern.id,
            title=pattern.title,
            student_id=pattern.student_ref,
            day_schedule={day.value: format_time_of_day(start) for day, start in pattern.day_schedule.items()},
            duration_minutes=pattern.duration_minutes,
            start_date=pattern.start_date,
            end_date=pattern.end_date,
            notes=pattern.notes,
            timezone=pattern.timezone,
        )


class ClassResponse(BaseModel):
    id: str | None
    recurring_class_template_id: str | None
    title: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    notes: str | None
    student_id: str | None
    attendee_count: int
    attendee_names: list[str]

    @classmethod
    def from_occurrence(cls, occurrence: ClassOccurrence) -> ClassResponse:
        return cls(
            id=occurrence.id,
            recurring_class_template_id=occurrence.pattern_ref,
            title=occurrence.title,
            start_time=occurrence.start_instant,
            end_time=occurrence.end_instant,
            duration_minutes=occurrence.duration_minutes,
            notes=occurrence.notes,
            student_id=occurrence.student_ref,
            attendee_count=occurrence.attendee_count,
            attendee_names=list(occurrence.attendee_names),
        )


class CreatePatternResponse(BaseModel):
    pattern: RecurringPatternResponse
    classes_created: int
    classes: list[ClassResponse]


class SlotResponse(BaseModel):
    day: date
    hour: int
    count: int
    tier: CapacityTier | None
    occupancy: str | None
    full: bool
    primary: ClassResponse | None

    @classmethod
    def from_slot(cls, slot: SlotView) -> SlotResponse:
        return cls(
            day=slot.day,
            hour=slot.hour,
            count=slot.count,
            tier=slot.tier,
            occupancy=slot.occupancy,
            full=slot.full,
            primary=ClassResponse.from_occurrence(slot.primary) if slot.primary else None,
        )


class ScheduleResponse(BaseModel):
    window_start: date
    window_end: date
    capacity: int
    hours: list[int]
    slots: list[SlotResponse]
    off_grid: list[ClassResponse]

    @classmethod
    def from_view(cls, view: ScheduleView) -> ScheduleResponse:
        return cls(
            window_start=view.window_start,
            window_end=view.window_end,
            capacity=view.capacity,
            hours=list(view.hours),
            slots=[SlotResponse.from_slot(slot) for slot in view.slots],
            off_grid=[ClassResponse.from_occurrence(o) for o in view.off_grid],
        )


class RegenerateResponse(BaseModel):
    patterns_processed: int
    classes_created: int
    failed_pattern_ids: list[str]


class ClassRequest(BaseModel):
    title: str | None = Field(default=None, description="Required unless student_id is set")
    student_id: str | None = None
    day: date = Field(description="Local date of the class")
    start_time: str = Field(description='Local start time, "HH:MM"')
    duration_minutes: int
    notes: str | None = None
    timezone: str | None = Field(default=None, description="IANA zone; defaults to the studio zone")


class AttendeeRequest(BaseModel):
    student_id: str
    displace_attendee_id: str | None = Field(default=None, description="Attendee removed to make room")


class AttendeeStatusRequest(BaseModel):
    status: AttendanceStatus


class AttendeeResponse(BaseModel):
    id: str
    class_id: str
    student_id: str
    student_name: str
    status: AttendanceStatus

    @classmethod
    def from_attendee(cls, attendee: Attendee) -> AttendeeResponse:
        return cls(
            id=attendee.id,
            class_id=attendee.class_id,
            student_id=attendee.student_ref,
            student_name=attendee.student_name,
            status=attendee.status,
        )
