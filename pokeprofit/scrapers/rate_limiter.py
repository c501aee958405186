# pokeprofit/scrapers/rate_limiter.py

"""Request pacing primitives: fixed-delay limiter and token bucket."""

import asyncio
import logging
import threading
import time
from collections.abc import Callable

from pokeprofit.config.settings import Settings

logger = logging.getLogger("pokeprofit.ratelimit")


class RateLimiter:
    """Enforces a minimum delay between consecutive operations.

    The first call never blocks.  A caller cancelled while waiting
    leaves the last-call timestamp untouched for the next caller.
    """

    def __init__(self, delay: float) -> None:
        self._delay = max(0.0, delay)
        self._last_call: float | None = None
        self._lock = asyncio.Lock()

    @property
    def delay(self) -> float:
        return self._delay

    async def wait(self) -> None:
        """Block until ``delay`` seconds have passed since the last call."""
        async with self._lock:
            if self._last_call is not None:
                elapsed = time.monotonic() - self._last_call
                remaining = self._delay - elapsed
                if remaining > 0:
                    logger.debug("Rate limiter sleeping %.2fs", remaining)
                    await asyncio.sleep(remaining)
            self._last_call = time.monotonic()

    def reset(self) -> None:
        """Forget the last call so the next one passes immediately."""
        self._last_call = None


class TokenBucket:
    """Token bucket for burst-capped request pacing.

    Tokens refill lazily on every access at ``refill_rate`` per second
    and never exceed ``max_tokens``.
    """

    def __init__(
        self,
        max_tokens: float,
        refill_rate: float,
        clock: Callable[[], float] = time.monotonic,
        poll_interval: float | None = None,
    ) -> None:
        self._max_tokens = float(max_tokens)
        self._refill_rate = float(refill_rate)
        self._tokens = float(max_tokens)
        self._clock = clock
        self._last_refill = clock()
        self._poll_interval = (
            Settings.TOKEN_BUCKET_POLL_INTERVAL
            if poll_interval is None
            else poll_interval
        )
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(
            self._max_tokens,
            self._tokens + elapsed * self._refill_rate,
        )
        self._last_refill = now

    def take(self) -> bool:
        """Take one token if available; never blocks."""
        with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False

    async def take_wait(self) -> None:
        """Poll until a token is available or the task is cancelled."""
        while not self.take():
            await asyncio.sleep(self._poll_interval)

    def available(self) -> float:
        """Current token count after refill."""
        with self._lock:
            self._refill()
            return self._tokens
