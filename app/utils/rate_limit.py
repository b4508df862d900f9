"""Fixed-window request rate limiting for outbound API clients."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class RateLimitWindow:
    """Counter for the current window; owned by a single limiter."""

    request_count: int
    window_start: float


class FixedWindowRateLimiter:
    """Allow ``max_requests`` per ``window_seconds`` using discrete windows.

    Bursts straddling a window boundary may reach twice the nominal quota.
    """

    def __init__(
        self,
        *,
        max_requests: int = 60,
        window_seconds: float = 60.0,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be positive.")
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self.window = RateLimitWindow(request_count=0, window_start=clock())

    async def check_rate_limit(self) -> None:
        """Count one request, waiting for the next window when the cap is hit."""
        now = self._clock()
        if now - self.window.window_start >= self._window_seconds:
            self._reset(now)

        if self.window.request_count >= self._max_requests:
            wait_seconds = self._window_seconds - (now - self.window.window_start)
            logger.info(
                "Rate limit of %s requests reached; waiting %.2fs for next window",
                self._max_requests,
                wait_seconds,
            )
            await self._sleep(wait_seconds)
            self._reset(self._clock())

        self.window.request_count += 1

    def _reset(self, now: float) -> None:
        self.window.request_count = 0
        self.window.window_start = now


__all__ = ["FixedWindowRateLimiter", "RateLimitWindow"]
