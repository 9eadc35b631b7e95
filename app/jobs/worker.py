"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable and runs it outside the API process.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from app.config import settings
from app.db.pool import db_pool
from app.dependencies import build_sync_services
from app.infrastructure.observability.logging import get_logger, setup_logging
from app.repositories.student_repository import StudentRepository

logger = get_logger(__name__)

JobCoroutine = Callable[[], Awaitable[None]]


async def start_sync_scheduler() -> None:
    """Run the cron-scheduled sync until the process is stopped."""
    await db_pool.initialize()
    services = build_sync_services(settings)

    try:
        await StudentRepository.ensure_schema()
        services.controller.start(settings.SYNC_DEFAULT_SCHEDULE)
        logger.info("Sync scheduler worker running", **services.controller.get_status())
        await asyncio.Event().wait()
    finally:
        services.controller.shutdown()
        await db_pool.close()


async def run_sync_once() -> None:
    """Run a single sync pass and exit."""
    await db_pool.initialize()
    services = build_sync_services(settings)

    try:
        await StudentRepository.ensure_schema()
        report = await services.controller.trigger_sync()
        logger.info(
            "One-off sync finished",
            success=report.get("success"),
            successful=report.get("successful"),
            failed=report.get("failed"),
        )
    finally:
        await db_pool.close()


JOB_REGISTRY: dict[str, JobCoroutine] = {
    "sync_scheduler": start_sync_scheduler,
    "sync_once": run_sync_once,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "sync_scheduler").strip().lower()


async def run_worker(job_name: str | None = None) -> None:
    """Run the requested background job."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting background worker", job=name)
    await JOB_REGISTRY[name]()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    job_name = _resolve_job_name()
    asyncio.run(run_worker(job_name))


if __name__ == "__main__":
    main()
