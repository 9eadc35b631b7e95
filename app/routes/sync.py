"""
Sync scheduler routes.
Control API for the recurring Codeforces sync: status, start/stop,
schedule changes and on-demand runs.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import get_schedule_controller
from app.infrastructure.observability.logging import get_logger
from app.jobs.schedule_controller import ScheduleController
from app.jobs.schedule_state import InvalidScheduleError
from app.models.api.sync_request import StartScheduleRequest, UpdateScheduleRequest
from app.models.api.sync_response import ScheduleChangeResponse, SchedulerStatusResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_sync_status(controller: ScheduleController = Depends(get_schedule_controller)):
    """Current schedule state plus the latest run report."""
    return SchedulerStatusResponse(**controller.get_status())


@router.post("/start", response_model=ScheduleChangeResponse)
async def start_sync_schedule(
    payload: StartScheduleRequest | None = None,
    controller: ScheduleController = Depends(get_schedule_controller),
):
    """Start the recurring sync; without a schedule the default is used."""
    schedule = payload.schedule if payload else None

    try:
        controller.start(schedule)
    except InvalidScheduleError as e:
        logger.warning("Rejected sync schedule", schedule=schedule, error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return ScheduleChangeResponse(
        success=True,
        message="Sync schedule started successfully",
        status=SchedulerStatusResponse(**controller.get_status()),
    )


@router.post("/stop", response_model=ScheduleChangeResponse)
async def stop_sync_schedule(controller: ScheduleController = Depends(get_schedule_controller)):
    """Stop future scheduled runs; a run in progress still completes."""
    controller.stop()

    return ScheduleChangeResponse(
        success=True,
        message="Sync schedule stopped successfully",
        status=SchedulerStatusResponse(**controller.get_status()),
    )


@router.post("")
@router.post("/run")
async def run_sync_now(controller: ScheduleController = Depends(get_schedule_controller)) -> dict:
    """
    Run a full sync now and return its report.

    Served at both POST /sync and POST /sync/run.
    """
    try:
        return await controller.trigger_sync()
    except Exception as e:
        logger.error("Error during manual sync", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error during manual sync",
        )


@router.put("/schedule", response_model=ScheduleChangeResponse)
async def update_sync_schedule(
    payload: UpdateScheduleRequest,
    controller: ScheduleController = Depends(get_schedule_controller),
):
    """
    Replace the schedule (stop, then start).

    An invalid expression leaves the scheduler stopped.
    """
    try:
        controller.update_schedule(payload.schedule)
    except InvalidScheduleError as e:
        logger.warning("Rejected sync schedule update", schedule=payload.schedule, error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return ScheduleChangeResponse(
        success=True,
        message="Sync schedule updated successfully",
        status=SchedulerStatusResponse(**controller.get_status()),
    )


@router.get("/schedules")
async def list_common_schedules() -> dict[str, str]:
    """Named cron presets."""
    return ScheduleController.get_common_schedules()
