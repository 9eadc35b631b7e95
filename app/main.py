"""
FastAPI application for the Codeforces progress sync service.
Owns startup/shutdown of the database pool and the sync scheduler.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.config import settings
from app.db.pool import db_pool
from app.dependencies import build_sync_services
from app.infrastructure.observability.logging import get_logger, setup_logging
from app.jobs.schedule_state import InvalidScheduleError
from app.repositories.student_repository import StudentRepository
from app.routes import health, notifications, students, sync

setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""

    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    try:
        logger.info("Initializing database pool")
        await db_pool.initialize()
        await StudentRepository.ensure_schema()
    except Exception as e:
        logger.error("Failed to initialize services", error=str(e))
        await db_pool.close()
        raise

    services = build_sync_services(settings)
    app.state.sync_services = services

    if settings.SYNC_AUTO_START:
        try:
            services.controller.start(settings.SYNC_DEFAULT_SCHEDULE)
        except InvalidScheduleError as e:
            # Keep serving; the schedule can be fixed through PUT /sync/schedule
            logger.error(
                "Default sync schedule is invalid, scheduler not started",
                schedule=settings.SYNC_DEFAULT_SCHEDULE,
                error=str(e),
            )

    yield

    logger.info("Application shutting down")

    try:
        services.controller.shutdown()
    except Exception as e:
        logger.error("Error stopping sync scheduler", error=str(e))

    await db_pool.close()
    logger.info("All services closed")


app = FastAPI(
    title="Codeforces Progress Sync",
    description="Scheduled Codeforces sync and inactivity reminders for tracked students",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(sync.router)
app.include_router(notifications.router)
app.include_router(students.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
