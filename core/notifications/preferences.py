"""
Availability and offset resolution for reminder preferences.

All functions here are pure: they take a preference plus a date or time and
never touch the database. Malformed stored values fail open so a bad row
never silences a participant's reminders.
"""

import logging
from datetime import date, datetime, time

from core.constants import DAY_NAMES, DEFAULT_OFFSET_MINUTES, SUPPORTED_OFFSETS
from core.timezone import parse_slot_time, to_local

from .types import ReminderPreference

logger = logging.getLogger(__name__)


def resolve_offset(preference: ReminderPreference) -> int:
    """Reminder lead time in minutes; anything outside SUPPORTED_OFFSETS becomes the default."""
    offset = preference.offset_minutes
    if isinstance(offset, bool) or offset not in SUPPORTED_OFFSETS:
        return DEFAULT_OFFSET_MINUTES
    return int(offset)


def _parse_day(value) -> int | None:
    """Map a stored day ("Monday", "mon", 0) to a weekday index, None if unrecognised."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 0 <= value <= 6 else None
    if not isinstance(value, str):
        return None

    name = value.strip().lower()
    if len(name) < 3:
        return None
    for index, day_name in enumerate(DAY_NAMES):
        full = day_name.lower()
        if name == full or name == full[:3]:
            return index
    return None


def active_weekdays(preference: ReminderPreference) -> set[int] | None:
    """
    Weekday indexes the participant wants reminders on.

    Returns:
        Set of weekday indexes, or None meaning every day (empty, missing or
        malformed active_days)
    """
    raw = preference.active_days
    if not raw or not isinstance(raw, (list, tuple, set)):
        return None

    days = set()
    for value in raw:
        index = _parse_day(value)
        if index is None:
            logger.warning(
                f"Ignoring malformed active_days for {preference.owner_id}: {raw!r}"
            )
            return None
        days.add(index)
    return days


def is_day_active(preference: ReminderPreference, day: date) -> bool:
    weekdays = active_weekdays(preference)
    return weekdays is None or day.weekday() in weekdays


def is_available(preference: ReminderPreference, now: datetime) -> bool:
    """Whether today, in the participant's timezone, is one of their active days."""
    local_now = to_local(now, preference.timezone)
    return is_day_active(preference, local_now.date())


def is_quiet_time(preference: ReminderPreference, local_time: time) -> bool:
    """
    Whether a local wall-clock time falls inside the participant's quiet hours.

    Ranges may wrap midnight (22:00-06:00). Start is inclusive, end exclusive.
    Missing or malformed bounds mean no quiet hours.
    """
    start = parse_slot_time(preference.quiet_hours_start)
    end = parse_slot_time(preference.quiet_hours_end)
    if start is None or end is None or start == end:
        return False

    current = local_time.replace(second=0, microsecond=0, tzinfo=None)
    if start < end:
        return start <= current < end
    return current >= start or current < end
