"""
Broadcast admin API routes.

Endpoints:
- POST /api/admin/broadcasts - Queue a broadcast to all active WhatsApp subscribers
- GET /api/admin/broadcasts/{job_id} - Get status and counts of a broadcast
- POST /api/admin/broadcasts/{job_id}/cancel - Stop a broadcast between sends
"""

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from core.notifications.broadcast import (
    BroadcastFinishedError,
    BroadcastNotFoundError,
    cancel_broadcast,
    get_broadcast_status,
    start_broadcast,
)

router = APIRouter(prefix="/api/admin/broadcasts", tags=["broadcasts"])


class BroadcastRequest(BaseModel):
    """Request body for starting a broadcast."""

    message: str = Field(min_length=1)


@router.post("", status_code=202)
async def start_broadcast_endpoint(request: BroadcastRequest) -> dict[str, Any]:
    """
    Queue a broadcast.

    Delivery runs in the background; poll the status endpoint for progress.
    """
    try:
        job_id = await start_broadcast(request.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"job_id": job_id}


@router.get("/{job_id}")
async def get_broadcast_endpoint(job_id: int) -> dict[str, Any]:
    """Get status and counts of a broadcast."""
    status = await get_broadcast_status(job_id)
    if not status:
        raise HTTPException(status_code=404, detail="Broadcast not found")
    return status


@router.post("/{job_id}/cancel", status_code=202)
async def cancel_broadcast_endpoint(job_id: int) -> dict[str, Any]:
    """
    Cancel a broadcast.

    Returns 409 if the broadcast already completed or was cancelled.
    """
    try:
        return await cancel_broadcast(job_id)
    except BroadcastNotFoundError:
        raise HTTPException(status_code=404, detail="Broadcast not found")
    except BroadcastFinishedError as e:
        raise HTTPException(status_code=409, detail=str(e))
