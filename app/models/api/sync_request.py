# app/models/api/sync_request.py
from pydantic import BaseModel, Field


class StartScheduleRequest(BaseModel):
    """Request for POST /sync/start; omitted schedule means the default."""

    schedule: str | None = Field(default=None, description="5-field cron expression (UTC)")


class UpdateScheduleRequest(BaseModel):
    """Request for PUT /sync/schedule"""

    schedule: str = Field(..., min_length=1, description="5-field cron expression (UTC)")


class SendTestEmailRequest(BaseModel):
    """Request for POST /notifications/test"""

    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
