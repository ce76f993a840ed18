"""
One-off reminders scheduled by admins for a single WhatsApp number.

Rows in custom_reminders move pending -> sending -> sent | failed. A row is
claimed (pending -> sending) in the same UPDATE that selects it as due, so a
reminder is dispatched at most once per claim. A transient send failure puts
the row back to pending until CUSTOM_REMINDER_MAX_ATTEMPTS is reached.
"""

import asyncio
import logging
from datetime import datetime, timezone

import sentry_sdk
from sqlalchemy import insert, select, update

from core.config import get_broadcast_rate_per_second
from core.constants import CUSTOM_REMINDER_MAX_ATTEMPTS
from core.database import get_connection, get_transaction
from core.enums import CustomReminderStatus
from core.tables import custom_reminders
from core.timezone import get_timezone

from .channels.whatsapp import DeliveryResult, normalize_address, send_whatsapp_message
from .templates import get_message
from .throttle import SendThrottle

logger = logging.getLogger(__name__)

# Serializes processing runs; a run that finds it held is skipped
_process_lock = asyncio.Lock()


def _reminder_from_row(row) -> dict:
    return {
        "reminder_id": row["reminder_id"],
        "phone_number": row["phone_number"],
        "message": row["message"],
        "scheduled_for": row["scheduled_for"],
        "status": CustomReminderStatus(row["status"]).value,
        "attempts": row["attempts"],
        "created_by": row["created_by"],
        "error_message": row["error_message"],
        "sent_at": row["sent_at"],
    }


async def create_custom_reminder(
    phone_number: str,
    message: str,
    scheduled_for: datetime,
    created_by: str | None = None,
) -> int:
    """
    Schedule a reminder.

    Args:
        phone_number: Recipient WhatsApp number
        message: Reminder text
        scheduled_for: When to send; naive times are read in the default zone
        created_by: Shown in the message as the author

    Returns:
        reminder_id of the new row

    Raises:
        ValueError: If the message is empty or the number is malformed
    """
    text = (message or "").strip()
    if not text:
        raise ValueError("Reminder message must not be empty")

    address = normalize_address(phone_number)
    if address is None:
        raise ValueError(f"Invalid WhatsApp number: {phone_number!r}")

    if scheduled_for.tzinfo is None:
        scheduled_for = get_timezone(None).localize(scheduled_for)

    async with get_transaction() as conn:
        result = await conn.execute(
            insert(custom_reminders)
            .values(
                phone_number=address,
                message=text,
                scheduled_for=scheduled_for,
                status=CustomReminderStatus.pending,
                created_by=(created_by or "").strip() or None,
            )
            .returning(custom_reminders.c.reminder_id)
        )
        reminder_id = result.scalar_one()

    logger.info(f"Custom reminder {reminder_id} scheduled for {scheduled_for.isoformat()}")
    return reminder_id


async def get_custom_reminder(reminder_id: int) -> dict | None:
    """Current state of a reminder, or None if it does not exist."""
    async with get_connection() as conn:
        result = await conn.execute(
            select(custom_reminders).where(custom_reminders.c.reminder_id == reminder_id)
        )
        row = result.mappings().first()
    return _reminder_from_row(row) if row else None


async def _claim_due(now: datetime) -> list[dict]:
    async with get_transaction() as conn:
        result = await conn.execute(
            update(custom_reminders)
            .where(
                custom_reminders.c.status == CustomReminderStatus.pending,
                custom_reminders.c.scheduled_for <= now,
            )
            .values(
                status=CustomReminderStatus.sending,
                attempts=custom_reminders.c.attempts + 1,
            )
            .returning(custom_reminders)
        )
        rows = [dict(row) for row in result.mappings().all()]
    return sorted(rows, key=lambda r: (r["scheduled_for"], r["reminder_id"]))


async def _settle(reminder_id: int, attempts: int, delivery: DeliveryResult) -> CustomReminderStatus:
    if delivery.success:
        status = CustomReminderStatus.sent
    elif delivery.is_transient and attempts < CUSTOM_REMINDER_MAX_ATTEMPTS:
        status = CustomReminderStatus.pending
    else:
        status = CustomReminderStatus.failed

    values = {"status": status, "error_message": delivery.error}
    if status == CustomReminderStatus.sent:
        values["sent_at"] = datetime.now(timezone.utc)

    async with get_transaction() as conn:
        await conn.execute(
            update(custom_reminders)
            .where(
                custom_reminders.c.reminder_id == reminder_id,
                custom_reminders.c.status == CustomReminderStatus.sending,
            )
            .values(**values)
        )
    return status


async def _deliver(reminder: dict, throttle: SendThrottle) -> CustomReminderStatus:
    body = get_message(
        "custom_reminder",
        {"message": reminder["message"], "created_by": reminder["created_by"] or "System"},
    )
    await throttle.acquire()
    delivery = await send_whatsapp_message(reminder["phone_number"], body)
    if not delivery.success:
        logger.warning(f"Custom reminder {reminder['reminder_id']} failed: {delivery.error}")
    return await _settle(reminder["reminder_id"], reminder["attempts"], delivery)


async def process_custom_reminders(now: datetime | None = None) -> dict[str, int]:
    """
    Send every pending reminder whose scheduled time has passed.

    Args:
        now: Cut-off time (defaults to the current UTC time)

    Returns:
        Count of reminders per resulting status
    """
    now = now or datetime.now(timezone.utc)
    counts: dict[str, int] = {}

    if _process_lock.locked():
        logger.warning("Previous custom reminder run still going, skipping this one")
        return counts

    async with _process_lock:
        due = await _claim_due(now)
        throttle = SendThrottle(get_broadcast_rate_per_second())

        for reminder in due:
            try:
                status = await _deliver(reminder, throttle)
            except Exception as e:
                logger.error(f"Custom reminder {reminder['reminder_id']} raised: {e}")
                sentry_sdk.capture_exception(e)
                status = CustomReminderStatus.sending
            counts[status.value] = counts.get(status.value, 0) + 1

    if due:
        logger.info(f"Custom reminders processed: {counts}")
    return counts
