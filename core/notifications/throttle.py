"""Token-bucket throttle for outbound broadcast sends."""

import asyncio
import time


class SendThrottle:
    """
    Token bucket shared by the sends of one broadcast.

    Args:
        rate_per_second: Tokens added per second.
        burst: Bucket capacity; 1 means evenly spaced sends.
    """

    def __init__(self, rate_per_second: float, burst: int = 1):
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be positive")
        self.rate_per_second = rate_per_second
        self.burst = max(1, burst)
        self._tokens = float(self.burst)
        self._updated = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._updated
        self._updated = now
        self._tokens = min(self.burst, self._tokens + elapsed * self.rate_per_second)

    async def acquire(self) -> None:
        """Wait until a send is allowed, then consume one token."""
        async with self._lock:
            self._refill()
            if self._tokens < 1:
                await asyncio.sleep((1 - self._tokens) / self.rate_per_second)
                self._refill()
            self._tokens -= 1
