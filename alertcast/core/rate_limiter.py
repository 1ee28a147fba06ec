"""Token-bucket admission control for outbound API calls and chat replies."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

logger = logging.getLogger("RateLimiter")


class RateLimiter:
    """Token bucket with a refill rate (tokens/second) and a burst capacity.

    ``acquire()`` waits until a token is available and never drops work.
    Callers that need bounded latency wrap it in ``asyncio.wait_for``;
    cancelling a waiter leaves the bucket untouched.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        *,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate <= 0 or burst < 1:
            raise ValueError("rate must be positive and burst at least 1")
        self.rate = rate
        self.burst = burst
        self.name = name
        self._clock = clock
        self._tokens = float(burst)
        self._updated_at = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(now - self._updated_at, 0.0)
        self._tokens = min(self.burst, self._tokens + elapsed * self.rate)
        self._updated_at = now

    @property
    def available(self) -> float:
        self._refill()
        return self._tokens

    def try_acquire(self) -> bool:
        """Take a token if one is available right now."""
        self._refill()
        if self._tokens >= 1:
            self._tokens -= 1
            return True
        return False

    async def acquire(self) -> None:
        # Waiters queue on the lock so tokens are handed out in arrival order
        async with self._lock:
            while not self.try_acquire():
                deficit = (1 - self._tokens) / self.rate
                logger.debug(f"[{self.name}] throttled, waiting {deficit:.2f}s")
                await asyncio.sleep(deficit)


def api_limiter() -> RateLimiter:
    """Conservative limiter shared by outbound platform API calls."""
    return RateLimiter(rate=2.0, burst=5, name="api")


def chat_limiter() -> RateLimiter:
    """Limiter for outbound chat replies."""
    return RateLimiter(rate=1.0, burst=5, name="chat")
