# app/models/api/sync_response.py
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class SchedulerStatusResponse(BaseModel):
    """Response for GET /sync/status"""

    is_running: bool
    current_schedule: str
    last_run_time: datetime | None = None
    next_run_time: datetime | None = None
    sync_in_progress: bool
    last_run_report: dict[str, Any] | None = None


class ScheduleChangeResponse(BaseModel):
    """Response for start/stop/update of the schedule."""

    success: bool
    message: str
    status: SchedulerStatusResponse


class EmailStatusResponse(BaseModel):
    """Response for GET /notifications/status"""

    is_configured: bool
    transport: str
    cooldown_days: int
    last_check: datetime


class ReminderResponse(BaseModel):
    """Response for POST /students/{id}/reminder"""

    success: bool
    delivered: bool = False
    demo: bool = False
    message_id: str | None = None
    counter_recorded: bool = False
    counter_error: str | None = None
    error: str | None = None


class RatingRefreshResponse(BaseModel):
    """Response for PUT /students/{id}/rating"""

    message: str
    student_id: str
    current_rating: int = Field(..., ge=0)
    max_rating: int = Field(..., ge=0)
