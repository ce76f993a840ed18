"""Data types shared by the reminder engine."""

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from core.constants import DEFAULT_OFFSET_MINUTES
from core.enums import ContentSource, SlotStatus


@dataclass
class Slot:
    """A recurring daily prayer commitment owned by one participant."""

    slot_id: int
    owner_id: str
    start_time: str  # "HH:MM", local to the owner
    status: SlotStatus = SlotStatus.active


@dataclass
class ReminderPreference:
    """
    Per-participant reminder settings.

    Values are kept as stored; the resolvers in preferences.py decide what
    malformed or missing values mean.
    """

    owner_id: str
    offset_minutes: int | None = DEFAULT_OFFSET_MINUTES
    active_days: Any = field(default_factory=list)  # empty = every day
    enabled: bool = True
    timezone: str | None = None
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None

    @classmethod
    def default(cls, owner_id: str) -> "ReminderPreference":
        return cls(owner_id=owner_id)


@dataclass
class Recipient:
    """A participant reachable on WhatsApp."""

    user_id: str
    display_name: str | None
    address: str | None  # WhatsApp number

    @property
    def first_name(self) -> str:
        if self.display_name and self.display_name.strip():
            return self.display_name.strip().split()[0]
        return "Beloved Intercessor"


@dataclass(frozen=True)
class DeliveryKey:
    """Identifies one reminder opportunity: participant, slot, lead time, date."""

    owner_id: str
    slot_id: int
    offset_minutes: int
    calendar_date: date

    def __str__(self) -> str:
        return (
            f"{self.owner_id}/{self.slot_id}/{self.offset_minutes}m/"
            f"{self.calendar_date.isoformat()}"
        )


@dataclass
class ContentUnit:
    """The devotional text for one calendar date."""

    content_date: date
    body: str
    source_kind: ContentSource
