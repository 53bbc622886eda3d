"""Crawler Notifier — Async Rate Limiter.

Sliding-window limiter used to space out HTTP requests to the crawled
sites. Concurrent callers are serialized with an asyncio.Lock.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque

from crawler_notifier.utils.logger import get_logger

logger = get_logger(__name__)


class AsyncRateLimiter:
    """Allow at most ``max_calls`` acquisitions per ``period`` seconds.

    Attributes:
        max_calls: Maximum number of calls allowed within the time window.
        period: Time window in seconds.
    """

    def __init__(self, max_calls: int, period_seconds: float) -> None:
        if max_calls < 1:
            raise ValueError(f"max_calls must be >= 1, got {max_calls}")
        self.max_calls = max_calls
        self.period = period_seconds
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _expire(self, now: float) -> None:
        """Drop timestamps that have left the window."""
        cutoff = now - self.period
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    async def acquire(self) -> None:
        """Wait for a free slot and claim it.

        The lock is held while sleeping, so waiters are served in arrival
        order.
        """
        async with self._lock:
            now = time.monotonic()
            self._expire(now)

            if len(self._timestamps) >= self.max_calls:
                wait_time = self._timestamps[0] + self.period - now
                if wait_time > 0:
                    logger.debug("Rate limit reached, waiting %.2f seconds", wait_time)
                    await asyncio.sleep(wait_time)
                now = time.monotonic()
                self._expire(now)

            self._timestamps.append(now)

    async def __aenter__(self) -> "AsyncRateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *args: object) -> None:
        pass

    def __repr__(self) -> str:
        return f"AsyncRateLimiter(max_calls={self.max_calls}, period={self.period}s)"
