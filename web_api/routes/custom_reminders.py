"""
Custom reminder admin API routes.

Endpoints:
- POST /api/admin/custom-reminders - Schedule a one-off WhatsApp reminder
- GET /api/admin/custom-reminders/{reminder_id} - Get the state of a reminder
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from core.notifications.custom_reminders import (
    create_custom_reminder,
    get_custom_reminder,
)

router = APIRouter(prefix="/api/admin/custom-reminders", tags=["custom-reminders"])


class CustomReminderRequest(BaseModel):
    """Request body for scheduling a custom reminder."""

    phone_number: str
    message: str = Field(min_length=1)
    scheduled_for: datetime
    created_by: str | None = None


@router.post("", status_code=201)
async def create_custom_reminder_endpoint(request: CustomReminderRequest) -> dict[str, Any]:
    """Schedule a reminder. It is sent on the first custom reminder run after scheduled_for."""
    try:
        reminder_id = await create_custom_reminder(
            request.phone_number,
            request.message,
            request.scheduled_for,
            created_by=request.created_by,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"reminder_id": reminder_id}


@router.get("/{reminder_id}")
async def get_custom_reminder_endpoint(reminder_id: int) -> dict[str, Any]:
    reminder = await get_custom_reminder(reminder_id)
    if not reminder:
        raise HTTPException(status_code=404, detail="Custom reminder not found")
    return reminder
