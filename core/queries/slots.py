"""Prayer slot registry queries."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection

from ..enums import SlotStatus
from ..notifications.types import Slot
from ..tables import prayer_slots


async def list_active_slots(conn: AsyncConnection) -> list[Slot]:
    """
    Get all active slots, one entry per slot_id.

    Paused and released slots are excluded.
    """
    result = await conn.execute(
        select(prayer_slots)
        .where(prayer_slots.c.status == SlotStatus.active)
        .order_by(prayer_slots.c.slot_id)
    )

    slots: dict[int, Slot] = {}
    for row in result.mappings():
        if row["slot_id"] in slots:
            continue
        slots[row["slot_id"]] = Slot(
            slot_id=row["slot_id"],
            owner_id=row["user_id"],
            start_time=row["slot_time"],
            status=SlotStatus(row["status"]),
        )
    return list(slots.values())
