"""
Timezone and slot-time utilities.

Slot times are stored as wall-clock strings local to the participant
("05:30" or the legacy range form "05:30–06:00"), so every comparison
happens after converting "now" into the participant's timezone.
"""

import re
from datetime import date, datetime, time, timedelta

import pytz

from .config import get_default_timezone

# "HH:MM" optionally followed by an en dash / hyphen and an end time
SLOT_TIME_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*(?:[–-]\s*\d{1,2}:\d{2}\s*)?$")

SLOT_LENGTH = timedelta(minutes=30)


def get_timezone(tz_name: str | None):
    """
    Resolve a timezone name, falling back to the configured default.

    Unknown names are treated like missing ones rather than raising.
    """
    for candidate in (tz_name, get_default_timezone()):
        if not candidate:
            continue
        try:
            return pytz.timezone(candidate)
        except pytz.UnknownTimeZoneError:
            continue
    return pytz.UTC


def to_local(now: datetime, tz_name: str | None) -> datetime:
    """Convert an aware datetime to the given zone (naive datetimes treated as UTC)."""
    if now.tzinfo is None:
        now = pytz.UTC.localize(now)
    return now.astimezone(get_timezone(tz_name))


def localize(day: date, wall_time: time, tz_name: str | None) -> datetime:
    """Attach a zone to a local date + wall-clock time."""
    tz = get_timezone(tz_name)
    return tz.localize(datetime.combine(day, wall_time))


def parse_slot_time(value: str | None) -> time | None:
    """
    Parse the start of a slot time string.

    Args:
        value: "HH:MM", "HH:MM–HH:MM" or "HH:MM-HH:MM"

    Returns:
        The start time, or None if the string is malformed
    """
    if not value:
        return None
    match = SLOT_TIME_PATTERN.match(value)
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return time(hours, minutes)


def format_slot_range(start: time) -> str:
    """Format a slot start as the half-hour range shown to participants ("05:30–06:00")."""
    start_dt = datetime.combine(date(2000, 1, 1), start)
    end_dt = start_dt + SLOT_LENGTH
    return f"{start_dt:%H:%M}–{end_dt:%H:%M}"
