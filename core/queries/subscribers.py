"""WhatsApp subscriber registry queries."""

from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection

from ..notifications.types import Recipient
from ..tables import whatsapp_subscribers


def _row_to_recipient(row: Mapping[str, Any]) -> Recipient:
    return Recipient(
        user_id=row["user_id"],
        display_name=row["display_name"],
        address=row["whatsapp_number"],
    )


async def list_active_subscribers(conn: AsyncConnection) -> list[Recipient]:
    """Get every active subscriber, including those without a number (counted as skipped by broadcasts)."""
    result = await conn.execute(
        select(whatsapp_subscribers)
        .where(whatsapp_subscribers.c.is_active.is_(True))
        .order_by(whatsapp_subscribers.c.subscriber_id)
    )
    return [_row_to_recipient(row) for row in result.mappings()]


async def get_recipient(conn: AsyncConnection, user_id: str) -> Recipient | None:
    """Get the active WhatsApp recipient for a participant, or None."""
    result = await conn.execute(
        select(whatsapp_subscribers).where(
            whatsapp_subscribers.c.user_id == user_id,
            whatsapp_subscribers.c.is_active.is_(True),
        )
    )
    row = result.mappings().first()
    return _row_to_recipient(row) if row else None
