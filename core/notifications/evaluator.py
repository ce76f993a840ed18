"""
Reminder evaluation for a single slot.

process_slot() decides whether a slot's reminder is due right now and, if it
is, delivers it and records the outcome. process_slot_start() does the same
for the notice sent when the slot begins. compute_trigger() and should_fire()
are the pure time-window pieces and have no side effects.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from core.config import get_trigger_tolerance_seconds
from core.constants import START_OFFSET_MINUTES
from core.database import get_connection
from core.enums import DeliveryOutcome
from core.queries.subscribers import get_recipient
from core.timezone import format_slot_range, localize, parse_slot_time, to_local

from .channels.whatsapp import DeliveryResult, normalize_address, send_whatsapp_message
from .content import get_daily_content
from .dedup import CHANNEL_WHATSAPP, is_delivery_settled, record_delivery
from .preferences import is_day_active, is_quiet_time, resolve_offset
from .templates import get_message
from .types import DeliveryKey, Recipient, ReminderPreference, Slot

logger = logging.getLogger(__name__)


class EvaluationAction(str, enum.Enum):
    not_due = "not_due"
    day_inactive = "day_inactive"
    disabled = "disabled"
    quiet_hours = "quiet_hours"
    already_sent = "already_sent"
    no_address = "no_address"
    sent = "sent"
    failed_transient = "failed_transient"
    failed_permanent = "failed_permanent"
    duplicate = "duplicate"


@dataclass
class EvaluationResult:
    """What happened to one slot in one tick."""

    slot_id: int
    owner_id: str
    action: EvaluationAction
    trigger_at: datetime | None = None
    error: str | None = None


# =============================================================================
# Time window
# =============================================================================


def compute_trigger(
    start: time,
    offset_minutes: int,
    occurrence_date: date,
    tz_name: str | None,
) -> datetime:
    """Aware datetime at which the reminder for one slot occurrence should fire."""
    return localize(occurrence_date, start, tz_name) - timedelta(minutes=offset_minutes)


def should_fire(trigger_at: datetime, now: datetime, tolerance_seconds: float) -> bool:
    """Whether now is within tolerance of the trigger time, on either side."""
    return abs((now - trigger_at).total_seconds()) <= tolerance_seconds


def nearest_trigger(
    start: time,
    offset_minutes: int,
    now: datetime,
    tz_name: str | None,
) -> tuple[datetime, date]:
    """
    Find the slot occurrence whose trigger is closest to now.

    Only today's and tomorrow's occurrences (local to the participant) can
    have a trigger near now, since a trigger precedes its slot by at most an
    hour. Tomorrow matters for early-morning slots whose trigger falls before
    midnight.

    Returns:
        (trigger_at, occurrence_date)
    """
    local_today = to_local(now, tz_name).date()
    candidates = []
    for occurrence in (local_today, local_today + timedelta(days=1)):
        trigger_at = compute_trigger(start, offset_minutes, occurrence, tz_name)
        candidates.append((abs((now - trigger_at).total_seconds()), trigger_at, occurrence))
    _, trigger_at, occurrence = min(candidates)
    return trigger_at, occurrence


# =============================================================================
# Delivery
# =============================================================================


async def _load_recipient(owner_id: str) -> Recipient | None:
    async with get_connection() as conn:
        return await get_recipient(conn, owner_id)


async def _send_with_retry(address: str, body: str, key: DeliveryKey) -> DeliveryResult:
    """Send once, and once more immediately if the first failure was transient."""
    result = await send_whatsapp_message(address, body)
    if result.is_transient:
        logger.info(f"Retrying reminder {key} after transient failure: {result.error}")
        result = await send_whatsapp_message(address, body)
    return result


async def _evaluate_opportunity(
    slot: Slot,
    preference: ReminderPreference,
    now: datetime,
    tolerance_seconds: float | None,
    offset: int,
    message_type: str,
) -> EvaluationResult:
    if tolerance_seconds is None:
        tolerance_seconds = get_trigger_tolerance_seconds()

    def result(action: EvaluationAction, trigger_at=None, error=None):
        return EvaluationResult(
            slot_id=slot.slot_id,
            owner_id=slot.owner_id,
            action=action,
            trigger_at=trigger_at,
            error=error,
        )

    start = parse_slot_time(slot.start_time)
    if start is None:
        logger.warning(f"Slot {slot.slot_id} has unparseable time {slot.start_time!r}")
        return result(EvaluationAction.not_due, error="invalid slot time")

    trigger_at, occurrence = nearest_trigger(start, offset, now, preference.timezone)

    if not should_fire(trigger_at, now, tolerance_seconds):
        return result(EvaluationAction.not_due, trigger_at)
    if not preference.enabled:
        return result(EvaluationAction.disabled, trigger_at)
    if not is_day_active(preference, occurrence):
        return result(EvaluationAction.day_inactive, trigger_at)

    local_now = to_local(now, preference.timezone)
    if is_quiet_time(preference, local_now.time()):
        return result(EvaluationAction.quiet_hours, trigger_at)

    key = DeliveryKey(
        owner_id=slot.owner_id,
        slot_id=slot.slot_id,
        offset_minutes=offset,
        calendar_date=occurrence,
    )
    if await is_delivery_settled(key):
        return result(EvaluationAction.already_sent, trigger_at)

    recipient = await _load_recipient(slot.owner_id)
    if recipient is None or normalize_address(recipient.address) is None:
        logger.info(f"No WhatsApp address for {slot.owner_id}, skipping reminder {key}")
        return result(EvaluationAction.no_address, trigger_at)

    context = {
        "name": recipient.first_name,
        "offset_minutes": offset,
        "slot_range": format_slot_range(start),
        "date": occurrence.strftime("%A %d %B %Y"),
    }
    if message_type == "slot_reminder":
        content = await get_daily_content(local_now.date())
        context["content"] = content.body
    body = get_message(message_type, context)

    delivery = await _send_with_retry(recipient.address, body, key)

    if delivery.success:
        if not await record_delivery(key, DeliveryOutcome.sent, CHANNEL_WHATSAPP):
            logger.warning(f"Reminder {key} was delivered but another worker recorded it first")
            return result(EvaluationAction.duplicate, trigger_at)
        logger.info(f"Reminder {key} sent")
        return result(EvaluationAction.sent, trigger_at)

    if delivery.is_transient:
        outcome, action = DeliveryOutcome.failed_transient, EvaluationAction.failed_transient
    else:
        outcome, action = DeliveryOutcome.failed_permanent, EvaluationAction.failed_permanent

    await record_delivery(key, outcome, CHANNEL_WHATSAPP, delivery.error)
    logger.warning(f"Reminder {key} failed ({outcome.value}): {delivery.error}")
    return result(action, trigger_at, delivery.error)


async def process_slot(
    slot: Slot,
    preference: ReminderPreference,
    now: datetime,
    tolerance_seconds: float | None = None,
) -> EvaluationResult:
    """
    Evaluate one slot against the current time and deliver its reminder if due.

    Args:
        slot: Active slot
        preference: Owner's preference (default instance when none is stored)
        now: Current time (aware)
        tolerance_seconds: Trigger window half-width (defaults to config)

    Returns:
        EvaluationResult describing the decision
    """
    return await _evaluate_opportunity(
        slot, preference, now, tolerance_seconds, resolve_offset(preference), "slot_reminder"
    )


async def process_slot_start(
    slot: Slot,
    preference: ReminderPreference,
    now: datetime,
    tolerance_seconds: float | None = None,
) -> EvaluationResult:
    """Send the 'prayer time has begun' notice when a slot starts."""
    return await _evaluate_opportunity(
        slot, preference, now, tolerance_seconds, START_OFFSET_MINUTES, "slot_start"
    )
