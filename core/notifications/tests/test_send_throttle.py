"""Tests for the broadcast send throttle."""

from unittest.mock import AsyncMock, patch

import pytest

from core.notifications.throttle import SendThrottle


class TestSendThrottle:
    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            SendThrottle(0)

    @pytest.mark.asyncio
    async def test_first_send_is_immediate(self):
        throttle = SendThrottle(rate_per_second=2)

        with patch("core.notifications.throttle.asyncio.sleep", AsyncMock()) as mock_sleep:
            await throttle.acquire()

        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_back_to_back_sends_are_spaced(self):
        throttle = SendThrottle(rate_per_second=2)

        with patch("core.notifications.throttle.asyncio.sleep", AsyncMock()) as mock_sleep:
            await throttle.acquire()
            await throttle.acquire()

        mock_sleep.assert_awaited_once()
        assert mock_sleep.call_args.args[0] == pytest.approx(0.5, abs=0.05)

    @pytest.mark.asyncio
    async def test_burst_allows_initial_sends_without_waiting(self):
        throttle = SendThrottle(rate_per_second=1, burst=3)

        with patch("core.notifications.throttle.asyncio.sleep", AsyncMock()) as mock_sleep:
            for _ in range(3):
                await throttle.acquire()

        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_real_rate_is_respected(self):
        import time

        throttle = SendThrottle(rate_per_second=50)
        started = time.monotonic()
        for _ in range(6):
            await throttle.acquire()

        assert time.monotonic() - started >= 0.09
