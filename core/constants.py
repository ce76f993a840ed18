"""
Shared constants used across the reminder engine.
"""

# Day name list for ordering (index matches datetime.weekday())
DAY_NAMES = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

# Reminder lead times a participant may choose, in minutes before slot start
SUPPORTED_OFFSETS = (5, 15, 30, 60)
DEFAULT_OFFSET_MINUTES = 30

# Zone used when a participant has no timezone of their own
DEFAULT_TIMEZONE = "Africa/Harare"

# WhatsApp Cloud API limit for a text message body
WHATSAPP_MAX_BODY_LENGTH = 4096

# Length budget for generated content embedded in outbound messages
CONTENT_MAX_LENGTH = 1024

ELLIPSIS = "…"

# Dedup offset for the notice sent when a slot begins
START_OFFSET_MINUTES = 0

# Sends attempted for a custom reminder before it is marked failed
CUSTOM_REMINDER_MAX_ATTEMPTS = 3
