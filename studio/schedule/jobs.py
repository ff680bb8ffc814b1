"""Periodic regeneration of recurring classes.

Open-ended templates only have classes up to the horizon materialized when
they were created. This job re-runs generation for every active template
over a rolling horizon and inserts with skip_existing, so repeated runs do
not duplicate classes already on the calendar.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from studio.config.settings import settings
from studio.db.session import get_session
from studio.schedule.errors import ScheduleError
from studio.schedule.generator import OccurrenceGenerator
from studio.schedule.store import SqlRecordStore
from studio.utils.timezone import today_in_zone

REGENERATION_JOB_ID = "recurring_class_regeneration"


@dataclass
class RegenerationResult:
    patterns_processed: int = 0
    classes_created: int = 0
    failed_pattern_ids: list[str] = field(default_factory=list)


def regenerate_open_patterns(today: date | None = None, horizon_days: int | None = None) -> RegenerationResult:
    """Materialize classes for every active template from today to today + horizon.

    Each template runs in its own transaction; a failing template is logged
    and skipped so the others still get their classes.
    """
    today = today or today_in_zone()
    horizon_days = settings.regeneration_horizon_days if horizon_days is None else horizon_days
    horizon_end = today + timedelta(days=horizon_days)
    generator = OccurrenceGenerator(horizon_days=horizon_days)
    result = RegenerationResult()

    with get_session() as session:
        patterns = SqlRecordStore(session).list_patterns(active_on=today)

    logger.info(f"[JOBS] Regenerating {len(patterns)} recurring template(s) through {horizon_end.isoformat()}")

    for pattern in patterns:
        window = replace(pattern, start_date=max(pattern.start_date, today))
        try:
            with get_session() as session:
                store = SqlRecordStore(session)
                occurrences = generator.generate(window, horizon_end, student_name=store.student_name(pattern.student_ref))
                inserted = store.bulk_insert(occurrences, skip_existing=True)
        except ScheduleError as e:
            logger.error(f"[JOBS] Regeneration failed for template {pattern.id}: {e}")
            result.failed_pattern_ids.append(str(pattern.id))
            continue
        result.patterns_processed += 1
        result.classes_created += len(inserted)

    logger.info(
        "[JOBS] Regeneration finished",
        processed=result.patterns_processed,
        created=result.classes_created,
        failed=len(result.failed_pattern_ids),
    )
    return result


def create_scheduler() -> BackgroundScheduler:
    """Background scheduler running regenerate_open_patterns on the configured interval."""
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        regenerate_open_patterns,
        trigger=IntervalTrigger(hours=settings.regeneration_interval_hours),
        id=REGENERATION_JOB_ID,
        name="Recurring class regeneration",
        replace_existing=True,
    )
    return scheduler
