"""
Devotional content for reminders and broadcasts.

Two producers share one capability, produce(day) -> ContentUnit:
GeneratedContent asks the AI provider; FallbackContent picks from a static
pool and cannot fail. get_daily_content() is the only place that chooses
between them, and it caches the result per calendar date (in-process and in
content_cache) so every caller sees the same body for a date.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone

import sentry_sdk
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from core.config import get_ai_timeout_seconds, get_content_max_length
from core.constants import DAY_NAMES, ELLIPSIS
from core.database import get_connection, get_transaction
from core.enums import ContentSource
from core.tables import content_cache
from core.timezone import to_local

from .errors import ContentGenerationError
from .templates import get_fallback_pool, get_prompt, get_weekly_themes, load_templates
from .types import ContentUnit

logger = logging.getLogger(__name__)


# In-process memo, keyed by calendar date
_memo: dict[date, ContentUnit] = {}
_locks: dict[date, asyncio.Lock] = {}

# Dates older than this are dropped from the memo
MEMO_RETENTION = timedelta(days=2)


# =============================================================================
# Validation
# =============================================================================


def truncate_with_ellipsis(text: str, max_length: int) -> str:
    """
    Shorten text to at most max_length characters, cutting at a word boundary.

    Text that already fits is returned unchanged.
    """
    if len(text) <= max_length:
        return text

    cut = text[: max_length - len(ELLIPSIS)]
    boundary = max(cut.rfind(" "), cut.rfind("\n"))
    if boundary > 0:
        cut = cut[:boundary]
    return cut.rstrip() + ELLIPSIS


def validate_content(text: str | None, max_length: int | None = None) -> str:
    """
    Normalize AI output into a deliverable body.

    Args:
        text: Raw provider output
        max_length: Length budget (defaults to CONTENT_MAX_LENGTH)

    Returns:
        Stripped text, truncated with an ellipsis if it was too long

    Raises:
        ContentGenerationError: If nothing usable remains
    """
    if max_length is None:
        max_length = get_content_max_length()

    body = (text or "").strip()
    if not body:
        raise ContentGenerationError("Generated content is empty")

    body = truncate_with_ellipsis(body, max_length)
    if not body.rstrip(ELLIPSIS).strip() or len(body) > max_length:
        raise ContentGenerationError("Generated content does not fit the length budget")
    return body


# =============================================================================
# Producers
# =============================================================================


class GeneratedContent:
    """AI-written devotional. Raises ContentGenerationError on any failure."""

    source_kind = ContentSource.generated

    def __init__(self, timeout_seconds: float | None = None):
        self.timeout_seconds = timeout_seconds

    async def produce(self, day: date) -> ContentUnit:
        from core.llm import generate_text

        themes = get_weekly_themes()
        prompt = get_prompt(
            "devotional",
            {
                "date": day.isoformat(),
                "weekday": DAY_NAMES[day.weekday()],
                "theme": themes[day.weekday() % len(themes)],
            },
        )
        text = await generate_text(
            prompt,
            self.timeout_seconds or get_ai_timeout_seconds(),
            system=load_templates()["prompts"]["devotional_system"],
            max_tokens=220,
        )
        return ContentUnit(
            content_date=day,
            body=validate_content(text),
            source_kind=self.source_kind,
        )


class FallbackContent:
    """Static devotional from the pool, chosen by day of year."""

    source_kind = ContentSource.fallback

    async def produce(self, day: date) -> ContentUnit:
        pool = get_fallback_pool()
        body = pool[day.timetuple().tm_yday % len(pool)]
        return ContentUnit(
            content_date=day,
            body=truncate_with_ellipsis(body.strip(), get_content_max_length()),
            source_kind=self.source_kind,
        )


async def _produce(day: date) -> ContentUnit:
    try:
        return await GeneratedContent().produce(day)
    except ContentGenerationError as e:
        logger.warning(f"Content generation failed for {day}, using fallback: {e}")
        return await FallbackContent().produce(day)


# =============================================================================
# Persistence
# =============================================================================


async def _load_cached(day: date) -> ContentUnit | None:
    async with get_connection() as conn:
        result = await conn.execute(
            select(content_cache).where(content_cache.c.content_date == day)
        )
        row = result.mappings().first()

    if not row:
        return None
    return ContentUnit(
        content_date=row["content_date"],
        body=row["body"],
        source_kind=ContentSource(row["source_kind"]),
    )


async def _store(unit: ContentUnit) -> ContentUnit:
    """
    Persist a unit unless one already exists for the date.

    Returns:
        Whichever unit is stored for the date afterwards
    """
    async with get_transaction() as conn:
        await conn.execute(
            insert(content_cache)
            .values(
                content_date=unit.content_date,
                body=unit.body,
                source_kind=unit.source_kind,
            )
            .on_conflict_do_nothing(index_elements=["content_date"])
        )
        result = await conn.execute(
            select(content_cache).where(content_cache.c.content_date == unit.content_date)
        )
        row = result.mappings().first()

    if not row or row["body"] == unit.body:
        return unit
    logger.info(f"Content for {unit.content_date} was already stored by another process")
    return ContentUnit(
        content_date=row["content_date"],
        body=row["body"],
        source_kind=ContentSource(row["source_kind"]),
    )


# =============================================================================
# Public API
# =============================================================================


def _today() -> date:
    return to_local(datetime.now(timezone.utc), None).date()


def _remember(unit: ContentUnit) -> None:
    _memo[unit.content_date] = unit
    for stale in [d for d in _memo if d < unit.content_date - MEMO_RETENTION]:
        _memo.pop(stale, None)
        _locks.pop(stale, None)


async def get_daily_content(day: date | None = None) -> ContentUnit:
    """
    Get the devotional for a calendar date.

    Order: in-process memo, content_cache row, AI generation, fallback pool.
    Concurrent callers for the same date wait on one generation. Never raises
    for generation or storage problems.

    Args:
        day: Calendar date (defaults to today in the default timezone)
    """
    day = day or _today()

    unit = _memo.get(day)
    if unit is not None:
        return unit

    lock = _locks.setdefault(day, asyncio.Lock())
    async with lock:
        unit = _memo.get(day)
        if unit is not None:
            return unit

        try:
            unit = await _load_cached(day)
        except Exception as e:
            logger.error(f"Failed to read content cache for {day}: {e}")
            sentry_sdk.capture_exception(e)
            unit = None

        if unit is None:
            unit = await _produce(day)
            try:
                unit = await _store(unit)
            except Exception as e:
                logger.error(f"Failed to store content for {day}: {e}")
                sentry_sdk.capture_exception(e)

        _remember(unit)
        logger.info(f"Daily content for {day} ready ({unit.source_kind.value})")
        return unit


async def summarize_for_broadcast(message: str) -> str:
    """
    Condense an admin-authored message for WhatsApp.

    Falls back to the original text, truncated with an ellipsis, when the AI
    provider fails.
    """
    from core.llm import generate_text

    max_length = get_content_max_length()
    try:
        summary = await generate_text(
            get_prompt("broadcast_summary", {"message": message}),
            get_ai_timeout_seconds(),
            max_tokens=300,
        )
        return validate_content(summary, max_length)
    except ContentGenerationError as e:
        logger.warning(f"Broadcast summary failed, sending original text: {e}")
        return truncate_with_ellipsis(message.strip(), max_length)


def clear_content_cache() -> None:
    """Forget memoized content. Used by tests and after manual cache edits."""
    _memo.clear()
    _locks.clear()
