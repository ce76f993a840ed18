"""Reminder preference registry queries."""

from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection

from ..notifications.types import ReminderPreference
from ..tables import reminder_preferences


def _row_to_preference(row: Mapping[str, Any]) -> ReminderPreference:
    return ReminderPreference(
        owner_id=row["user_id"],
        offset_minutes=row["offset_minutes"],
        active_days=row["active_days"] or [],
        enabled=bool(row["enabled"]) if row["enabled"] is not None else True,
        timezone=row["timezone"],
        quiet_hours_start=row["quiet_hours_start"],
        quiet_hours_end=row["quiet_hours_end"],
    )


async def get_preference(
    conn: AsyncConnection,
    owner_id: str,
) -> ReminderPreference:
    """Get a participant's reminder preference, or the default when none is stored."""
    result = await conn.execute(
        select(reminder_preferences).where(reminder_preferences.c.user_id == owner_id)
    )
    row = result.mappings().first()
    return _row_to_preference(row) if row else ReminderPreference.default(owner_id)


async def get_preferences(
    conn: AsyncConnection,
    owner_ids: list[str],
) -> dict[str, ReminderPreference]:
    """
    Get preferences for many participants in one query.

    Returns:
        Dict keyed by owner_id, with a default preference for every id that
        has no stored row
    """
    if not owner_ids:
        return {}

    result = await conn.execute(
        select(reminder_preferences).where(
            reminder_preferences.c.user_id.in_(set(owner_ids))
        )
    )
    preferences = {
        row["user_id"]: _row_to_preference(row) for row in result.mappings()
    }
    for owner_id in owner_ids:
        preferences.setdefault(owner_id, ReminderPreference.default(owner_id))
    return preferences
