"""SQLAlchemy Core table definitions for the database schema."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    func,
    text,
)

from .enums import (
    broadcast_status_enum,
    content_source_enum,
    custom_reminder_status_enum,
    delivery_outcome_enum,
    slot_status_enum,
)

# Naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


# =====================================================
# REGISTRIES (owned by the platform, read-only here)
# =====================================================
prayer_slots = Table(
    "prayer_slots",
    metadata,
    Column("slot_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Text, nullable=False),
    Column("slot_time", Text, nullable=False),  # "HH:MM" or "HH:MM–HH:MM"
    Column("status", slot_status_enum, nullable=False, server_default="active"),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now()),
    Index("idx_prayer_slots_status", "status"),
)

reminder_preferences = Table(
    "reminder_preferences",
    metadata,
    Column("user_id", Text, primary_key=True),
    Column("offset_minutes", Integer),
    Column("active_days", JSON),  # ["Monday", "Wednesday"]; null/empty = every day
    Column("enabled", Boolean, nullable=False, server_default=text("true")),
    Column("timezone", Text),
    Column("quiet_hours_start", Text),  # "HH:MM"
    Column("quiet_hours_end", Text),
    Column("updated_at", DateTime(timezone=True), server_default=func.now()),
)

whatsapp_subscribers = Table(
    "whatsapp_subscribers",
    metadata,
    Column("subscriber_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Text, nullable=False, unique=True),
    Column("whatsapp_number", Text),
    Column("display_name", Text),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Index("idx_whatsapp_subscribers_active", "is_active"),
)


# =====================================================
# DELIVERY_RECORDS (dedup store, append-only)
# =====================================================
delivery_records = Table(
    "delivery_records",
    metadata,
    Column("record_id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", Text, nullable=False),
    Column("slot_id", Integer, nullable=False),
    Column("offset_minutes", Integer, nullable=False),
    Column("calendar_date", Date, nullable=False),
    Column("channel", Text, nullable=False),  # "whatsapp"
    Column("outcome", delivery_outcome_enum, nullable=False),
    Column("error_message", Text),
    Column("sent_at", DateTime(timezone=True), server_default=func.now()),
    Index(
        "idx_delivery_records_key",
        "owner_id",
        "slot_id",
        "offset_minutes",
        "calendar_date",
    ),
    # At most one successful delivery per reminder opportunity
    Index(
        "uq_delivery_records_sent_key",
        "owner_id",
        "slot_id",
        "offset_minutes",
        "calendar_date",
        unique=True,
        postgresql_where=text("outcome = 'sent'"),
        sqlite_where=text("outcome = 'sent'"),
    ),
)


# =====================================================
# CONTENT_CACHE (one content unit per calendar date)
# =====================================================
content_cache = Table(
    "content_cache",
    metadata,
    Column("content_date", Date, primary_key=True),
    Column("body", Text, nullable=False),
    Column("source_kind", content_source_enum, nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)


# =====================================================
# BROADCAST_JOBS
# =====================================================
broadcast_jobs = Table(
    "broadcast_jobs",
    metadata,
    Column("job_id", Integer, primary_key=True, autoincrement=True),
    Column("authored_message", Text, nullable=False),
    Column("status", broadcast_status_enum, nullable=False, server_default="queued"),
    Column("total_recipients", Integer),
    Column("sent_count", Integer, nullable=False, server_default=text("0")),
    Column("failed_count", Integer, nullable=False, server_default=text("0")),
    Column("skipped_count", Integer, nullable=False, server_default=text("0")),
    Column("cancel_requested", Boolean, nullable=False, server_default=text("false")),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("completed_at", DateTime(timezone=True)),
    Index("idx_broadcast_jobs_status", "status"),
)


# =====================================================
# CUSTOM_REMINDERS (one-off messages scheduled by admins)
# =====================================================
custom_reminders = Table(
    "custom_reminders",
    metadata,
    Column("reminder_id", Integer, primary_key=True, autoincrement=True),
    Column("phone_number", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("scheduled_for", DateTime(timezone=True), nullable=False),
    Column("status", custom_reminder_status_enum, nullable=False, server_default="pending"),
    Column("attempts", Integer, nullable=False, server_default=text("0")),
    Column("created_by", Text),
    Column("error_message", Text),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("sent_at", DateTime(timezone=True)),
    Index("idx_custom_reminders_due", "status", "scheduled_for"),
)
