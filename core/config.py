"""
Centralized configuration for the reminder engine.

Every tunable is an environment variable read through a small function so
tests can override values with monkeypatch.setenv.
"""

import os

from .constants import CONTENT_MAX_LENGTH, DEFAULT_TIMEZONE


def _get_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        print(f"Warning: {name}={raw!r} is not a number, using {default}")
        return default


def _get_int(name: str, default: int) -> int:
    return int(_get_float(name, default))


def is_dev_mode() -> bool:
    """Check if running in development mode (DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def is_production() -> bool:
    """Check if running on Railway (production environment)."""
    return bool(os.environ.get("RAILWAY_ENVIRONMENT"))


def get_api_port() -> int:
    """Get API server port from env or default."""
    return int(os.getenv("API_PORT", "8000"))


def get_tick_interval_seconds() -> float:
    """How often the reminder poller runs."""
    return _get_float("REMINDER_TICK_SECONDS", 60.0)


def get_trigger_tolerance_seconds() -> float:
    """
    Half-width of the window around a trigger time in which a tick fires it.

    Defaults to half the tick interval so each trigger lands in exactly one tick.
    """
    return _get_float("REMINDER_TOLERANCE_SECONDS", get_tick_interval_seconds() / 2)


def get_worker_pool_size() -> int:
    """Max slots evaluated concurrently within one tick."""
    return max(1, _get_int("REMINDER_WORKERS", 8))


def get_default_timezone() -> str:
    return os.environ.get("REMINDER_TIMEZONE") or DEFAULT_TIMEZONE


def get_ai_timeout_seconds() -> float:
    return _get_float("AI_TIMEOUT_SECONDS", 10.0)


def get_dispatch_timeout_seconds() -> float:
    return _get_float("DISPATCH_TIMEOUT_SECONDS", 5.0)


def get_content_max_length() -> int:
    return _get_int("CONTENT_MAX_LENGTH", CONTENT_MAX_LENGTH)


def get_broadcast_rate_per_second() -> float:
    """WhatsApp sends per second during a broadcast."""
    return _get_float("BROADCAST_RATE_PER_SECOND", 2.0)


def get_start_notifications_enabled() -> bool:
    """Whether participants also get a notice when their slot begins."""
    return os.environ.get("REMINDER_START_NOTIFICATIONS", "true").strip().lower() not in (
        "false",
        "0",
        "no",
    )


def get_custom_reminder_interval_seconds() -> float:
    """How often due custom reminders are picked up."""
    return _get_float("CUSTOM_REMINDER_SECONDS", 300.0)


def get_devotional_hour() -> int | None:
    """Local hour for the daily devotional broadcast, or None to disable it."""
    raw = os.environ.get("DEVOTIONAL_HOUR", "6").strip()
    if not raw:
        return None
    try:
        hour = int(raw)
    except ValueError:
        return None
    return hour if 0 <= hour <= 23 else None


def check_timeout_budget() -> list[str]:
    """
    Check that a stuck external call cannot stall the poller.

    The AI timeout must be shorter than the tick interval, and a dispatch
    shorter than the AI timeout.

    Returns:
        List of warning messages (empty when the budget is consistent)
    """
    warnings = []
    tick = get_tick_interval_seconds()
    ai_timeout = get_ai_timeout_seconds()
    dispatch_timeout = get_dispatch_timeout_seconds()

    if ai_timeout >= tick:
        warnings.append(
            f"AI_TIMEOUT_SECONDS ({ai_timeout}) should be shorter than "
            f"REMINDER_TICK_SECONDS ({tick})"
        )
    if dispatch_timeout >= ai_timeout:
        warnings.append(
            f"DISPATCH_TIMEOUT_SECONDS ({dispatch_timeout}) should be shorter than "
            f"AI_TIMEOUT_SECONDS ({ai_timeout})"
        )
    return warnings


# Required environment variables
# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string", True),
    ("WHATSAPP_PHONE_NUMBER_ID", "WhatsApp Cloud API sender phone number ID", False),
    ("WHATSAPP_ACCESS_TOKEN", "WhatsApp Cloud API access token", False),
    ("LLM_API_KEY", "API key for the devotional text provider", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Check that required environment variables are set.

    Returns:
        (all_ok, warnings): Tuple of success flag and list of warning messages
    """
    warnings = []
    errors = []
    in_dev = is_dev_mode()

    for name, description, required_in_dev in REQUIRED_ENV_VARS:
        value = os.environ.get(name)

        if not value:
            if is_production():
                errors.append(f"  ✗ {name}: Not set ({description})")
            elif required_in_dev or not in_dev:
                warnings.append(f"  ⚠ {name}: Not set ({description})")

    warnings.extend(f"  ⚠ {message}" for message in check_timeout_budget())

    if errors:
        for error in errors:
            print(error)
        return False, warnings

    return True, warnings
