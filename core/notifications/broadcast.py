"""
Broadcast jobs: one admin message fanned out to every active subscriber.

Each broadcast is a row in broadcast_jobs and runs as its own asyncio task,
separate from the reminder poller. Sends are paced by a SendThrottle, counts
are persisted after every recipient, and a cancel request is honoured
between sends.
"""

import asyncio
import logging
from datetime import date, datetime, timezone

import sentry_sdk
from sqlalchemy import insert, select, update

from core.config import get_broadcast_rate_per_second
from core.database import get_connection, get_transaction
from core.enums import TERMINAL_BROADCAST_STATUSES, BroadcastStatus
from core.queries.subscribers import list_active_subscribers
from core.tables import broadcast_jobs

from .channels.whatsapp import normalize_address, send_whatsapp_message
from .content import get_daily_content, summarize_for_broadcast
from .templates import get_message
from .throttle import SendThrottle
from .types import Recipient

logger = logging.getLogger(__name__)


# Strong references to running jobs so they are not garbage collected
_tasks: set[asyncio.Task] = set()


class BroadcastNotFoundError(Exception):
    """Raised when a broadcast job does not exist."""

    pass


class BroadcastFinishedError(Exception):
    """Raised when trying to cancel a job that already completed or was cancelled."""

    pass


# =============================================================================
# Job rows
# =============================================================================


def _status_from_row(row) -> dict:
    return {
        "job_id": row["job_id"],
        "status": BroadcastStatus(row["status"]).value,
        "total_recipients": row["total_recipients"],
        "sent_count": row["sent_count"],
        "failed_count": row["failed_count"],
        "skipped_count": row["skipped_count"],
        "cancel_requested": row["cancel_requested"],
        "created_at": row["created_at"],
        "completed_at": row["completed_at"],
    }


async def _create_job(authored_message: str) -> int:
    async with get_transaction() as conn:
        result = await conn.execute(
            insert(broadcast_jobs)
            .values(authored_message=authored_message, status=BroadcastStatus.queued)
            .returning(broadcast_jobs.c.job_id)
        )
        return result.scalar_one()


async def _mark_started(job_id: int, total_recipients: int) -> bool:
    """Move a job from queued to in_progress. False if it was cancelled first."""
    async with get_transaction() as conn:
        result = await conn.execute(
            update(broadcast_jobs)
            .where(
                broadcast_jobs.c.job_id == job_id,
                broadcast_jobs.c.status == BroadcastStatus.queued,
            )
            .values(status=BroadcastStatus.in_progress, total_recipients=total_recipients)
        )
        return result.rowcount > 0


async def _save_progress(job_id: int, counts: dict[str, int]) -> bool:
    """
    Persist running counts.

    Returns:
        True if a cancel has been requested for the job
    """
    async with get_transaction() as conn:
        result = await conn.execute(
            update(broadcast_jobs)
            .where(broadcast_jobs.c.job_id == job_id)
            .values(**counts)
            .returning(broadcast_jobs.c.cancel_requested)
        )
        return bool(result.scalar())


async def _finish(job_id: int, status: BroadcastStatus, counts: dict[str, int]) -> None:
    async with get_transaction() as conn:
        await conn.execute(
            update(broadcast_jobs)
            .where(
                broadcast_jobs.c.job_id == job_id,
                broadcast_jobs.c.status == BroadcastStatus.in_progress,
            )
            .values(status=status, completed_at=datetime.now(timezone.utc), **counts)
        )


async def _abort(job_id: int, counts: dict[str, int]) -> None:
    """Close a job that failed before or during its run."""
    async with get_transaction() as conn:
        await conn.execute(
            update(broadcast_jobs)
            .where(
                broadcast_jobs.c.job_id == job_id,
                broadcast_jobs.c.status.in_([BroadcastStatus.queued, BroadcastStatus.in_progress]),
            )
            .values(
                status=BroadcastStatus.cancelled,
                completed_at=datetime.now(timezone.utc),
                **counts,
            )
        )


async def _load_recipients() -> list[Recipient]:
    async with get_connection() as conn:
        return await list_active_subscribers(conn)


# =============================================================================
# Run
# =============================================================================


async def _send_to(recipient: Recipient, template: str, content: str, throttle: SendThrottle) -> str:
    """Deliver to one recipient. Returns the counter to bump."""
    if normalize_address(recipient.address) is None:
        return "skipped_count"

    try:
        body = get_message(template, {"name": recipient.first_name, "content": content})
        await throttle.acquire()
        result = await send_whatsapp_message(recipient.address, body)
    except Exception as e:
        logger.error(f"Broadcast send to {recipient.user_id} raised: {e}")
        sentry_sdk.capture_exception(e)
        return "failed_count"

    return "sent_count" if result.success else "failed_count"


async def _run_broadcast(
    job_id: int,
    authored_message: str,
    template: str = "broadcast",
    summarize: bool = True,
) -> None:
    """
    Deliver a job to every active subscriber.

    Args:
        job_id: Queued job to run
        authored_message: Text to send
        template: Message template wrapping the text
        summarize: Condense the text with AI once before sending
    """
    counts = {"sent_count": 0, "failed_count": 0, "skipped_count": 0}
    try:
        recipients = await _load_recipients()
        if not await _mark_started(job_id, len(recipients)):
            logger.info(f"Broadcast {job_id} was cancelled before it started")
            return

        content = await summarize_for_broadcast(authored_message) if summarize else authored_message
        throttle = SendThrottle(get_broadcast_rate_per_second())

        for position, recipient in enumerate(recipients, start=1):
            outcome = await _send_to(recipient, template, content, throttle)
            counts[outcome] += 1
            cancel_requested = await _save_progress(job_id, counts)
            if cancel_requested and position < len(recipients):
                await _finish(job_id, BroadcastStatus.cancelled, counts)
                logger.info(f"Broadcast {job_id} cancelled: {counts}")
                return

        await _finish(job_id, BroadcastStatus.completed, counts)
        logger.info(f"Broadcast {job_id} completed for {len(recipients)} recipients: {counts}")

    except Exception as e:
        logger.error(f"Broadcast {job_id} aborted: {e}")
        sentry_sdk.capture_exception(e)
        try:
            await _abort(job_id, counts)
        except Exception as abort_error:
            logger.error(f"Could not close broadcast {job_id}: {abort_error}")
            sentry_sdk.capture_exception(abort_error)


# =============================================================================
# Public API
# =============================================================================


async def start_broadcast(authored_message: str) -> int:
    """
    Queue a broadcast and start delivering it in the background.

    Args:
        authored_message: Admin-written text

    Returns:
        job_id of the new broadcast

    Raises:
        ValueError: If the message is empty
    """
    message = (authored_message or "").strip()
    if not message:
        raise ValueError("Broadcast message must not be empty")

    job_id = await _create_job(message)
    task = asyncio.create_task(_run_broadcast(job_id, message))
    _tasks.add(task)
    task.add_done_callback(_tasks.discard)

    logger.info(f"Broadcast {job_id} queued")
    return job_id


async def get_broadcast_status(job_id: int) -> dict | None:
    """Current status and counts for a job, or None if it does not exist."""
    async with get_connection() as conn:
        result = await conn.execute(
            select(broadcast_jobs).where(broadcast_jobs.c.job_id == job_id)
        )
        row = result.mappings().first()
    return _status_from_row(row) if row else None


async def cancel_broadcast(job_id: int) -> dict:
    """
    Request cancellation of a job.

    A queued job is cancelled immediately. An in-progress job stops before
    its next send, keeping the counts it has so far.

    Returns:
        The job status after the request

    Raises:
        BroadcastNotFoundError: If the job does not exist
        BroadcastFinishedError: If the job is already completed or cancelled
    """
    async with get_transaction() as conn:
        result = await conn.execute(
            select(broadcast_jobs)
            .where(broadcast_jobs.c.job_id == job_id)
            .with_for_update()
        )
        row = result.mappings().first()
        if not row:
            raise BroadcastNotFoundError(f"Broadcast {job_id} not found")

        status = BroadcastStatus(row["status"])
        if status in TERMINAL_BROADCAST_STATUSES:
            raise BroadcastFinishedError(f"Broadcast {job_id} is already {status.value}")

        values = {"cancel_requested": True}
        if status == BroadcastStatus.queued:
            values.update(status=BroadcastStatus.cancelled, completed_at=datetime.now(timezone.utc))

        result = await conn.execute(
            update(broadcast_jobs)
            .where(broadcast_jobs.c.job_id == job_id)
            .values(**values)
            .returning(broadcast_jobs)
        )
        updated = result.mappings().first()

    logger.info(f"Cancel requested for broadcast {job_id} ({status.value})")
    return _status_from_row(updated)


async def broadcast_daily_devotional(day: date | None = None) -> int:
    """
    Send the day's devotional to every active subscriber.

    Runs to completion in the caller's task (the daily cron job).

    Returns:
        job_id of the broadcast
    """
    content = await get_daily_content(day)
    job_id = await _create_job(content.body)
    await _run_broadcast(job_id, content.body, template="daily_devotional", summarize=False)
    return job_id
