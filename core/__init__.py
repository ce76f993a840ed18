"""
Core business logic - platform-agnostic.
Can be used by the web API, scheduled jobs, or any other interface.
"""

# Database (SQLAlchemy)
from .database import get_connection, get_transaction, get_engine, close_engine, is_configured, create_tables

# Constants
from .constants import DAY_NAMES, SUPPORTED_OFFSETS, DEFAULT_OFFSET_MINUTES, DEFAULT_TIMEZONE

# Timezone utilities
from .timezone import get_timezone, to_local, parse_slot_time, format_slot_range

__all__ = [
    # Database (SQLAlchemy)
    'get_connection', 'get_transaction', 'get_engine', 'close_engine', 'is_configured', 'create_tables',
    # Constants
    'DAY_NAMES', 'SUPPORTED_OFFSETS', 'DEFAULT_OFFSET_MINUTES', 'DEFAULT_TIMEZONE',
    # Timezone
    'get_timezone', 'to_local', 'parse_slot_time', 'format_slot_range',
]
