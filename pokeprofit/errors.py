# pokeprofit/errors.py

"""Exception hierarchy shared by the scraper, analyzer and stores.

Cancellation is never modelled here: ``asyncio.CancelledError`` always
propagates untouched through every blocking point.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pokeprofit.models.sale import ScrapeResult


class PokeprofitError(Exception):
    """Base exception for every pokeprofit failure."""


class InvalidInputError(PokeprofitError, ValueError):
    """Raised when caller input is rejected before any network activity."""


# ── Scraping ─────────────────────────────────────────────


class ScrapeError(PokeprofitError):
    """Raised when a page or a session could not be scraped."""


class HTTPStatusError(ScrapeError):
    """Raised when the marketplace answers with a non-200 status."""

    def __init__(self, status_code: int, url: str) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"unexpected status code {status_code} for {url}")


class BlockedError(ScrapeError):
    """Raised when a response is an anti-bot challenge or CAPTCHA page."""


class HostNotAllowedError(ScrapeError):
    """Raised when a request targets a host outside the allow-list."""


class RetriesExhaustedError(ScrapeError):
    """Raised when every retry attempt failed.

    Attributes:
        attempts: Total number of attempts made (initial + retries).
        last_error: The error raised by the final attempt.
    """

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"max retries exceeded after {attempts} attempts: {last_error}"
        )


class ScrapeTimeoutError(ScrapeError):
    """Raised when a scrape session runs past its deadline.

    The pages collected before the deadline are kept in ``result`` so
    callers can decide whether a partial crawl is good enough.
    """

    def __init__(self, result: ScrapeResult, timeout: float) -> None:
        self.result = result
        self.timeout = timeout
        super().__init__(
            f"scrape deadline of {timeout:.1f}s exceeded after "
            f"{result.pages_scraped} pages ({result.sale_count} sales)"
        )


# ── Analysis ─────────────────────────────────────────────


class AnalysisAlreadyRunningError(PokeprofitError):
    """Raised when a run is requested while another one is active."""

    def __init__(self) -> None:
        super().__init__("analysis already running")


class AnalysisFailedError(PokeprofitError):
    """Raised when a run ends in the ``failed`` state."""

    def __init__(self, run_id: str, phase: str, reason: str) -> None:
        self.run_id = run_id
        self.phase = phase
        self.reason = reason
        super().__init__(f"{phase} failed: {reason}")


class AnalysisTimeoutError(AnalysisFailedError):
    """Raised when a run hits its deadline; retry with a smaller scope."""


# ── Storage ──────────────────────────────────────────────


class StoreError(PokeprofitError):
    """Base exception for persistence failures."""


class ProductNotFoundError(StoreError, LookupError):
    """Raised when no product has the requested canonical name."""


class DuplicateProductError(StoreError):
    """Raised when inserting a product whose canonical name exists."""
