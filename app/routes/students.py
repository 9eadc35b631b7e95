"""
Per-student sync actions: manual reminder and single rating refresh.
Student CRUD itself is served elsewhere.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import SyncServices, get_sync_services
from app.infrastructure.observability.logging import get_logger
from app.models.api.sync_response import RatingRefreshResponse, ReminderResponse
from app.services.codeforces_service import ExternalFetchError
from app.services.notifications import NotificationError

logger = get_logger(__name__)

router = APIRouter(prefix="/students", tags=["students"])


async def _load_student(services: SyncServices, student_id: UUID):
    try:
        student = await services.repository.get_student(str(student_id))
    except Exception as e:
        logger.error("Error loading student", student_id=str(student_id), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load student"
        )

    if student is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return student


@router.post("/{student_id}/reminder", response_model=ReminderResponse)
async def send_student_reminder(
    student_id: UUID, services: SyncServices = Depends(get_sync_services)
):
    """Send a reminder now, bypassing the inactivity check and cooldown."""
    student = await _load_student(services, student_id)

    try:
        result = await services.dispatcher.send_reminder(student)
    except NotificationError as e:
        return ReminderResponse(success=False, error=str(e))

    return ReminderResponse(**result)


@router.put("/{student_id}/rating", response_model=RatingRefreshResponse)
async def refresh_student_rating(
    student_id: UUID, services: SyncServices = Depends(get_sync_services)
):
    """Pull current and max rating from Codeforces for one student."""
    student = await _load_student(services, student_id)

    if not student.has_handle:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Student has no Codeforces handle"
        )

    try:
        ratings = await services.codeforces.fetch_rating(student.codeforces_handle.strip())
    except ExternalFetchError as e:
        logger.warning("Rating refresh failed", student_id=str(student_id), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to fetch rating from Codeforces. Please check the handle.",
        )

    await services.repository.update_ratings(
        str(student_id), ratings["current_rating"], ratings["max_rating"]
    )

    return RatingRefreshResponse(
        message="Rating updated successfully",
        student_id=str(student_id),
        current_rating=ratings["current_rating"],
        max_rating=ratings["max_rating"],
    )
