"""
Reminder email routes.
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_dispatcher
from app.models.api.sync_request import SendTestEmailRequest
from app.models.api.sync_response import EmailStatusResponse
from app.services.notifications import NotificationDispatcher

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/status", response_model=EmailStatusResponse)
async def get_email_status(dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    """Whether reminders are actually delivered or only logged."""
    return EmailStatusResponse(**dispatcher.get_status())


@router.post("/test")
async def send_test_email(
    payload: SendTestEmailRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict:
    return await dispatcher.send_test_email(payload.email)
