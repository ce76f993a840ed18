"""Root pytest configuration."""

from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load environment variables before tests run
_root = Path(__file__).parent
load_dotenv(_root / ".env")
load_dotenv(_root / ".env.local", override=True)

# Tunables that a developer's .env may set; tests expect the defaults
ENGINE_ENV_VARS = (
    "REMINDER_TICK_SECONDS",
    "REMINDER_TOLERANCE_SECONDS",
    "REMINDER_WORKERS",
    "REMINDER_TIMEZONE",
    "AI_TIMEOUT_SECONDS",
    "DISPATCH_TIMEOUT_SECONDS",
    "CONTENT_MAX_LENGTH",
    "BROADCAST_RATE_PER_SECOND",
    "DEVOTIONAL_HOUR",
    "REMINDER_START_NOTIFICATIONS",
    "CUSTOM_REMINDER_SECONDS",
    "WHATSAPP_PHONE_NUMBER_ID",
    "WHATSAPP_ACCESS_TOKEN",
)


@pytest.fixture(autouse=True)
def default_engine_env(monkeypatch):
    """Run every test against default engine configuration."""
    for name in ENGINE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="session")
def event_loop_policy():
    """Use default event loop policy for all async tests."""
    import asyncio

    return asyncio.DefaultEventLoopPolicy()
