"""SQLAlchemy enum definitions for the database schema."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class SlotStatus(str, enum.Enum):
    active = "active"
    paused = "paused"
    released = "released"


class DeliveryOutcome(str, enum.Enum):
    sent = "sent"
    failed_permanent = "failed_permanent"
    failed_transient = "failed_transient"


class ContentSource(str, enum.Enum):
    generated = "generated"
    fallback = "fallback"


class BroadcastStatus(str, enum.Enum):
    queued = "queued"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


TERMINAL_BROADCAST_STATUSES = (BroadcastStatus.completed, BroadcastStatus.cancelled)


class CustomReminderStatus(str, enum.Enum):
    pending = "pending"
    sending = "sending"
    sent = "sent"
    failed = "failed"


# =====================================================
# SQLAlchemy Enum Types
# Stored as VARCHAR + CHECK (native_enum=False) so create_tables()
# works on a fresh database without separate type DDL
# =====================================================

slot_status_enum = SQLEnum(
    SlotStatus, name="slot_status", native_enum=False, length=16
)
delivery_outcome_enum = SQLEnum(
    DeliveryOutcome, name="delivery_outcome", native_enum=False, length=24
)
content_source_enum = SQLEnum(
    ContentSource, name="content_source", native_enum=False, length=16
)
broadcast_status_enum = SQLEnum(
    BroadcastStatus, name="broadcast_status", native_enum=False, length=16
)
custom_reminder_status_enum = SQLEnum(
    CustomReminderStatus, name="custom_reminder_status", native_enum=False, length=16
)
