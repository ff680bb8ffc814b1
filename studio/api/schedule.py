"""Schedule API endpoints.

Thin layer over ScheduleService: parses requests into scheduling types and
maps scheduling errors onto HTTP status codes.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger

from studio.api.schemas import (
    AttendeeRequest,
    AttendeeResponse,
    AttendeeStatusRequest,
    ClassRequest,
    ClassResponse,
    CreatePatternResponse,
    RecurringPatternRequest,
    RecurringPatternResponse,
    RegenerateResponse,
    ScheduleResponse,
)
from studio.schedule.errors import NotFoundError, StoreError, TimeConversionError, ValidationError
from studio.schedule.jobs import regenerate_open_patterns
from studio.schedule.models import RecurrencePattern
from studio.schedule.service import ScheduleService
from studio.schedule.validation import coerce_day_schedule
from studio.utils.timezone import today_in_zone

router = APIRouter(prefix="/schedule", tags=["schedule"])

_service = ScheduleService()


def get_schedule_service() -> ScheduleService:
    return _service


def _raise_unprocessable(detail: object) -> None:
    raise HTTPException(status_code=422, detail=detail)


def _raise_not_found(e: NotFoundError) -> None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


def _raise_unavailable(e: StoreError) -> None:
    logger.error(f"[API] Store unavailable: {e}")
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Schedule storage unavailable") from e


@router.post("/patterns", response_model=CreatePatternResponse, status_code=status.HTTP_201_CREATED)
def create_pattern(
    request: RecurringPatternRequest,
    service: ScheduleService = Depends(get_schedule_service),
) -> CreatePatternResponse:
    """Create a recurring class template and materialize its first horizon."""
    try:
        pattern = RecurrencePattern(
            id=None,
            title=request.title,
            day_schedule=coerce_day_schedule(request.day_schedule),
            duration_minutes=request.duration_minutes,
            start_date=request.start_date,
            end_date=request.end_date,
            student_ref=request.student_id,
            notes=request.notes,
            timezone=request.timezone,
        )
        created = service.create_pattern(pattern)
    except ValidationError as e:
        _raise_unprocessable(e.details)
    except TimeConversionError as e:
        _raise_unprocessable(str(e))
    except StoreError as e:
        _raise_unavailable(e)

    return CreatePatternResponse(
        pattern=RecurringPatternResponse.from_pattern(created.pattern),
        classes_created=len(created.occurrences),
        classes=[ClassResponse.from_occurrence(o) for o in created.occurrences],
    )


@router.get("/patterns", response_model=list[RecurringPatternResponse])
def list_patterns(service: ScheduleService = Depends(get_schedule_service)) -> list[RecurringPatternResponse]:
    try:
        patterns = service.list_patterns()
    except StoreError as e:
        _raise_unavailable(e)
    return [RecurringPatternResponse.from_pattern(p) for p in patterns]


@router.get("/week", response_model=ScheduleResponse)
def get_week(
    day: date | None = Query(default=None, description="Any date inside the requested week"),
    service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleResponse:
    """Monday-Sunday grid containing `day` (defaults to today)."""
    try:
        view = service.week_view(day or today_in_zone(service.zone_id))
    except StoreError as e:
        _raise_unavailable(e)
    except TimeConversionError as e:
        _raise_unprocessable(str(e))
    return ScheduleResponse.from_view(view)


@router.get("/day", response_model=ScheduleResponse)
def get_day(
    day: date | None = Query(default=None, description="Date to show (defaults to today)"),
    service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleResponse:
    try:
        view = service.day_view(day or today_in_zone(service.zone_id))
    except StoreError as e:
        _raise_unavailable(e)
    except TimeConversionError as e:
        _raise_unprocessable(str(e))
    return ScheduleResponse.from_view(view)


@router.post("/regenerate", response_model=RegenerateResponse)
def regenerate() -> RegenerateResponse:
    """Run the recurring-class regeneration job once."""
    try:
        result = regenerate_open_patterns()
    except StoreError as e:
        _raise_unavailable(e)
    return RegenerateResponse(
        patterns_processed=result.patterns_processed,
        classes_created=result.classes_created,
        failed_pattern_ids=result.failed_pattern_ids,
    )


@router.post("/classes", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
def create_class(
    request: ClassRequest,
    service: ScheduleService = Depends(get_schedule_service),
) -> ClassResponse:
    """Schedule a single class outside any recurring template."""
    try:
        created = service.create_class(
            title=request.title,
            day=request.day,
            start_time=request.start_time,
            duration_minutes=request.duration_minutes,
            student_ref=request.student_id,
            notes=request.notes,
            zone_id=request.timezone,
        )
    except ValidationError as e:
        _raise_unprocessable(e.details)
    except TimeConversionError as e:
        _raise_unprocessable(str(e))
    except StoreError as e:
        _raise_unavailable(e)
    return ClassResponse.from_occurrence(created)


@router.get("/classes/{class_id}/attendees", response_model=list[AttendeeResponse])
def list_attendees(
    class_id: str,
    service: ScheduleService = Depends(get_schedule_service),
) -> list[AttendeeResponse]:
    try:
        roster = service.list_attendees(class_id)
    except NotFoundError as e:
        _raise_not_found(e)
    except StoreError as e:
        _raise_unavailable(e)
    return [AttendeeResponse.from_attendee(a) for a in roster]


@router.post(
    "/classes/{class_id}/attendees",
    response_model=list[AttendeeResponse],
    status_code=status.HTTP_201_CREATED,
)
def add_attendee(
    class_id: str,
    request: AttendeeRequest,
    service: ScheduleService = Depends(get_schedule_service),
) -> list[AttendeeResponse]:
    """Book a student, optionally displacing another attendee. Returns the new roster."""
    try:
        roster = service.add_attendee(class_id, request.student_id, request.displace_attendee_id)
    except NotFoundError as e:
        _raise_not_found(e)
    except ValidationError as e:
        _raise_unprocessable(e.details)
    except StoreError as e:
        _raise_unavailable(e)
    return [AttendeeResponse.from_attendee(a) for a in roster]


@router.patch("/classes/{class_id}/attendees/{attendee_id}", response_model=list[AttendeeResponse])
def update_attendee_status(
    class_id: str,
    attendee_id: str,
    request: AttendeeStatusRequest,
    service: ScheduleService = Depends(get_schedule_service),
) -> list[AttendeeResponse]:
    try:
        roster = service.update_attendee_status(class_id, attendee_id, request.status)
    except NotFoundError as e:
        _raise_not_found(e)
    except StoreError as e:
        _raise_unavailable(e)
    return [AttendeeResponse.from_attendee(a) for a in roster]


@router.delete("/classes/{class_id}/attendees/{attendee_id}", response_model=list[AttendeeResponse])
def remove_attendee(
    class_id: str,
    attendee_id: str,
    service: ScheduleService = Depends(get_schedule_service),
) -> list[AttendeeResponse]:
    try:
        roster = service.remove_attendee(class_id, attendee_id)
    except StoreError as e:
        _raise_unavailable(e)
    return [AttendeeResponse.from_attendee(a) for a in roster]
