"""Tests for daily content selection, validation and caching."""

import asyncio
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest

from core.constants import CONTENT_MAX_LENGTH, ELLIPSIS
from core.enums import ContentSource
from core.notifications.content import (
    FallbackContent,
    GeneratedContent,
    get_daily_content,
    summarize_for_broadcast,
    truncate_with_ellipsis,
    validate_content,
)
from core.notifications.errors import ContentGenerationError
from core.notifications.templates import get_fallback_pool
from core.notifications.types import ContentUnit

DAY = date(2024, 1, 10)


@pytest.fixture
def no_cache_db():
    """content_cache is empty and stores whatever it is given."""
    with patch(
        "core.notifications.content._load_cached", AsyncMock(return_value=None)
    ) as mock_load, patch(
        "core.notifications.content._store", AsyncMock(side_effect=lambda unit: unit)
    ) as mock_store:
        yield {"load": mock_load, "store": mock_store}


class TestValidation:
    def test_strips_whitespace(self):
        assert validate_content("  Psalm 46:10 — Be still.\n\n") == "Psalm 46:10 — Be still."

    @pytest.mark.parametrize("text", [None, "", "   \n\t "])
    def test_rejects_empty(self, text):
        with pytest.raises(ContentGenerationError):
            validate_content(text)

    def test_truncates_long_text_at_word_boundary(self):
        text = "pray " * 300

        body = validate_content(text, max_length=100)

        assert len(body) <= 100
        assert body.endswith(ELLIPSIS)
        assert body[:-1].endswith("pray")

    def test_short_text_unchanged(self):
        assert truncate_with_ellipsis("Be still.", 100) == "Be still."

    def test_single_long_word_is_cut(self):
        body = truncate_with_ellipsis("x" * 50, 10)
        assert body == "x" * 9 + ELLIPSIS


class TestProducers:
    @pytest.mark.asyncio
    async def test_fallback_picks_by_day_of_year(self):
        pool = get_fallback_pool()

        unit = await FallbackContent().produce(DAY)

        assert unit.body == pool[10 % len(pool)]
        assert unit.source_kind == ContentSource.fallback

    @pytest.mark.asyncio
    async def test_fallback_varies_between_days(self):
        first = await FallbackContent().produce(date(2024, 1, 10))
        second = await FallbackContent().produce(date(2024, 1, 11))
        assert first.body != second.body

    @pytest.mark.asyncio
    async def test_generated_uses_ai_text(self):
        with patch(
            "core.llm.generate_text",
            AsyncMock(return_value="James 5:16 — The prayer of a righteous person is powerful."),
        ) as mock_generate:
            unit = await GeneratedContent().produce(DAY)

        assert unit.source_kind == ContentSource.generated
        assert unit.body.startswith("James 5:16")
        prompt = mock_generate.call_args.args[0]
        assert "2024-01-10" in prompt
        assert "Wednesday" in prompt

    @pytest.mark.asyncio
    async def test_generated_raises_on_empty_output(self):
        with patch("core.llm.generate_text", AsyncMock(return_value="   ")):
            with pytest.raises(ContentGenerationError):
                await GeneratedContent().produce(DAY)


class TestGetDailyContent:
    @pytest.mark.asyncio
    async def test_falls_back_when_ai_always_fails(self, no_cache_db):
        with patch(
            "core.llm.generate_text",
            AsyncMock(side_effect=ContentGenerationError("provider down")),
        ):
            unit = await get_daily_content(DAY)

        assert unit.source_kind == ContentSource.fallback
        assert unit.body.strip()
        assert len(unit.body) <= CONTENT_MAX_LENGTH

    @pytest.mark.asyncio
    async def test_long_ai_output_is_truncated(self, no_cache_db):
        with patch("core.llm.generate_text", AsyncMock(return_value="intercede " * 400)):
            unit = await get_daily_content(DAY)

        assert unit.source_kind == ContentSource.generated
        assert len(unit.body) <= CONTENT_MAX_LENGTH
        assert unit.body.endswith(ELLIPSIS)

    @pytest.mark.asyncio
    async def test_memoized_per_date(self, no_cache_db):
        with patch(
            "core.llm.generate_text", AsyncMock(return_value="Psalm 46:10 — Be still.")
        ) as mock_generate:
            first = await get_daily_content(DAY)
            second = await get_daily_content(DAY)

        assert first is second
        mock_generate.assert_awaited_once()
        no_cache_db["load"].assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_generation(self, no_cache_db):
        async def slow_generate(*args, **kwargs):
            await asyncio.sleep(0.01)
            return "Luke 18:1 — Always pray and not give up."

        with patch(
            "core.llm.generate_text", AsyncMock(side_effect=slow_generate)
        ) as mock_generate:
            units = await asyncio.gather(*(get_daily_content(DAY) for _ in range(5)))

        assert len({u.body for u in units}) == 1
        mock_generate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_uses_persisted_unit_without_generating(self):
        stored = ContentUnit(DAY, "Stored devotional", ContentSource.generated)

        with patch(
            "core.notifications.content._load_cached", AsyncMock(return_value=stored)
        ), patch("core.llm.generate_text", AsyncMock()) as mock_generate:
            unit = await get_daily_content(DAY)

        assert unit == stored
        mock_generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_first_persisted_unit_wins(self):
        other = ContentUnit(DAY, "Written by another worker", ContentSource.fallback)

        with patch(
            "core.notifications.content._load_cached", AsyncMock(return_value=None)
        ), patch(
            "core.notifications.content._store", AsyncMock(return_value=other)
        ), patch("core.llm.generate_text", AsyncMock(return_value="Mine")):
            unit = await get_daily_content(DAY)

        assert unit == other

    @pytest.mark.asyncio
    async def test_database_errors_do_not_block_content(self):
        with patch(
            "core.notifications.content._load_cached",
            AsyncMock(side_effect=RuntimeError("no database")),
        ), patch(
            "core.notifications.content._store",
            AsyncMock(side_effect=RuntimeError("no database")),
        ), patch(
            "core.llm.generate_text", AsyncMock(side_effect=ContentGenerationError("down"))
        ), patch("core.notifications.content.sentry_sdk"):
            unit = await get_daily_content(DAY)

        assert unit.source_kind == ContentSource.fallback
        assert unit.body


class TestSummarizeForBroadcast:
    @pytest.mark.asyncio
    async def test_returns_ai_summary(self):
        with patch(
            "core.llm.generate_text", AsyncMock(return_value="  Prayer night moved to Friday.  ")
        ):
            summary = await summarize_for_broadcast("A long announcement about prayer night")

        assert summary == "Prayer night moved to Friday."

    @pytest.mark.asyncio
    async def test_falls_back_to_truncated_original(self, monkeypatch):
        monkeypatch.setenv("CONTENT_MAX_LENGTH", "40")
        message = "The weekly prayer night moves to Friday at seven in the main hall."

        with patch(
            "core.llm.generate_text", AsyncMock(side_effect=ContentGenerationError("timeout"))
        ):
            summary = await summarize_for_broadcast(message)

        assert len(summary) <= 40
        assert summary.endswith(ELLIPSIS)
        assert message.startswith(summary[:-1])
