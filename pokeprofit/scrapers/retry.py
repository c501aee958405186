# pokeprofit/scrapers/retry.py

"""Bounded exponential-backoff retry for async operations."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from pokeprofit.config.settings import Settings
from pokeprofit.errors import RetriesExhaustedError

logger = logging.getLogger("pokeprofit.retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy.

    ``max_retries`` counts *additional* attempts, so an operation runs at
    most ``max_retries + 1`` times.  ``retryable`` decides whether an
    error is worth another attempt; ``None`` retries every error.
    """

    max_retries: int = Settings.MAX_RETRIES
    initial_delay: float = Settings.RETRY_INITIAL_DELAY
    max_delay: float = Settings.RETRY_MAX_DELAY
    backoff_factor: float = Settings.RETRY_BACKOFF_FACTOR
    jitter: bool = Settings.RETRY_JITTER
    retryable: Callable[[Exception], bool] | None = None


class Retryer:
    """Runs an async operation under a :class:`RetryConfig`."""

    def __init__(
        self,
        config: RetryConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or RetryConfig()
        self._rng = rng or random.Random()

    def delay_for(self, attempt: int) -> float:
        """Sleep before retry number *attempt* (1-based)."""
        cfg = self.config
        delay = min(
            cfg.max_delay,
            cfg.initial_delay * cfg.backoff_factor ** (attempt - 1),
        )
        if cfg.jitter:
            delay *= self._rng.uniform(0.75, 1.25)
        return delay

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Await *operation* until it succeeds or the policy gives up.

        Raises:
            RetriesExhaustedError: every attempt failed.
            Exception: the unmodified error when ``retryable`` rejects it.
        """
        cfg = self.config
        total_attempts = max(0, cfg.max_retries) + 1
        last_error: Exception | None = None

        for attempt in range(total_attempts):
            if attempt:
                delay = self.delay_for(attempt)
                logger.debug(
                    "Retry %d/%d in %.2fs",
                    attempt,
                    cfg.max_retries,
                    delay,
                )
                await asyncio.sleep(delay)
            else:
                # Checkpoint so a cancelled task never starts an attempt
                await asyncio.sleep(0)

            try:
                return await operation()
            except Exception as exc:
                if cfg.retryable is not None and not cfg.retryable(exc):
                    raise
                last_error = exc
                logger.warning(
                    "Attempt %d/%d failed: %s",
                    attempt + 1,
                    total_attempts,
                    exc,
                )

        if last_error is None:
            raise RuntimeError("retry loop finished without an attempt")
        raise RetriesExhaustedError(
            attempts=total_attempts, last_error=last_error,
        ) from last_error


async def retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
) -> T:
    """Convenience wrapper: run *operation* with a one-off Retryer."""
    return await Retryer(config).run(operation)
