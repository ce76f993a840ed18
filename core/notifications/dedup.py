"""
Durable record of reminder deliveries.

Every delivery attempt for a reminder opportunity (participant, slot, offset,
date) appends a row to delivery_records. A partial unique index allows only
one row with outcome 'sent' per opportunity, so two workers racing on the
same reminder cannot both record a success.
"""

import logging

from sqlalchemy import and_, func, insert, select
from sqlalchemy.exc import IntegrityError

from core.database import get_connection, get_transaction
from core.enums import DeliveryOutcome
from core.tables import delivery_records

from .types import DeliveryKey

logger = logging.getLogger(__name__)

CHANNEL_WHATSAPP = "whatsapp"

# Ticks that may attempt a key after transient failures
TRANSIENT_ATTEMPT_LIMIT = 2


def _key_clause(key: DeliveryKey):
    return and_(
        delivery_records.c.owner_id == key.owner_id,
        delivery_records.c.slot_id == key.slot_id,
        delivery_records.c.offset_minutes == key.offset_minutes,
        delivery_records.c.calendar_date == key.calendar_date,
    )


async def is_delivery_settled(key: DeliveryKey) -> bool:
    """
    Check whether a reminder opportunity needs no further attempts.

    Settled means a 'sent' or 'failed_permanent' record exists, or the key
    already has TRANSIENT_ATTEMPT_LIMIT transient failures (the first tick
    plus one later-tick retry).
    """
    async with get_connection() as conn:
        result = await conn.execute(
            select(delivery_records.c.outcome, func.count())
            .where(_key_clause(key))
            .group_by(delivery_records.c.outcome)
        )
        counts = {DeliveryOutcome(outcome): n for outcome, n in result.all()}

    if counts.get(DeliveryOutcome.sent) or counts.get(DeliveryOutcome.failed_permanent):
        return True
    return counts.get(DeliveryOutcome.failed_transient, 0) >= TRANSIENT_ATTEMPT_LIMIT


async def record_delivery(
    key: DeliveryKey,
    outcome: DeliveryOutcome,
    channel: str = CHANNEL_WHATSAPP,
    error_message: str | None = None,
) -> bool:
    """
    Append a delivery record.

    Args:
        key: The reminder opportunity
        outcome: sent, failed_permanent or failed_transient
        channel: Delivery channel name
        error_message: Failure detail for failed outcomes

    Returns:
        True if written, False if a 'sent' record already existed for the key
    """
    try:
        async with get_transaction() as conn:
            await conn.execute(
                insert(delivery_records).values(
                    owner_id=key.owner_id,
                    slot_id=key.slot_id,
                    offset_minutes=key.offset_minutes,
                    calendar_date=key.calendar_date,
                    channel=channel,
                    outcome=outcome,
                    error_message=error_message,
                )
            )
    except IntegrityError:
        if outcome != DeliveryOutcome.sent:
            raise
        logger.info(f"Duplicate sent record rejected for {key}")
        return False

    return True

