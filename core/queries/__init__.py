"""Query layer for database operations using SQLAlchemy Core."""

from .preferences import get_preference, get_preferences
from .slots import list_active_slots
from .subscribers import get_recipient, list_active_subscribers

__all__ = [
    # Slots
    "list_active_slots",
    # Preferences
    "get_preference",
    "get_preferences",
    # Subscribers
    "list_active_subscribers",
    "get_recipient",
]
