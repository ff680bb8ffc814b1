import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from loguru import logger

from studio.api.schedule import router as schedule_router
from studio.config.settings import settings
from studio.core.logger import setup_logger_from_settings
from studio.db.session import init_db
from studio.schedule.jobs import create_scheduler

setup_logger_from_settings()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Create tables and start the regeneration scheduler for the app's lifetime."""
    init_db()

    scheduler = None
    if settings.regeneration_enabled:
        scheduler = create_scheduler()
        scheduler.start()
        logger.info(f"[SCHEDULER] Recurring class regeneration runs every {settings.regeneration_interval_hours}h")

    await asyncio.sleep(0)
    yield

    if scheduler is not None:
        scheduler.shutdown()
        logger.info("[SCHEDULER] Stopped regeneration scheduler")


app = FastAPI(title="Studio Schedule", lifespan=lifespan)

app.include_router(schedule_router)

logger.info("FastAPI application initialized")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests."""
    logger.debug(f"Request: {request.method} {request.url.path}")
    response = await call_next(request)
    logger.debug(f"Response: {response.status_code} for {request.method} {request.url.path}")
    return response
