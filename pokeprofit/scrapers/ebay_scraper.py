# pokeprofit/scrapers/ebay_scraper.py

"""Sold-listing crawler for eBay.fr search results."""

import asyncio
import functools
import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from urllib.parse import urlencode, urlsplit

import cloudscraper  # type: ignore[import-untyped]
from bs4 import BeautifulSoup
from curl_cffi import requests as curl_requests

from pokeprofit.config.settings import Settings
from pokeprofit.errors import (
    BlockedError,
    HostNotAllowedError,
    HTTPStatusError,
    InvalidInputError,
    ScrapeError,
    ScrapeTimeoutError,
)
from pokeprofit.models.sale import RawSale, ScrapeResult
from pokeprofit.scrapers.ebay_parser import EbayParser
from pokeprofit.scrapers.rate_limiter import RateLimiter
from pokeprofit.scrapers.retry import RetryConfig, Retryer

# eBay search URL query parameters
PARAM_KEYWORD = "_nkw"
PARAM_CATEGORY = "_sacat"
PARAM_COMPLETED = "LH_Complete"
PARAM_SOLD = "LH_Sold"
PARAM_SORT = "_sop"
PARAM_ITEMS_PER_PAGE = "_ipg"
PARAM_PAGE_NUMBER = "_pgn"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

_RETRYABLE_STATUS: frozenset[int] = frozenset({403, 408, 425, 429})


class SortOrder(str, Enum):
    """Result orderings the search page accepts."""

    END_DATE_RECENT = "13"
    PRICE_LOWEST = "15"
    PRICE_HIGHEST = "16"


@dataclass
class ScrapeOptions:
    """Parameters of one crawl session.

    ``max_pages <= 0`` means the configured default and a missing
    ``since`` means ``LOOKBACK_DAYS`` before now.  ``timeout`` bounds the
    whole session in seconds.
    """

    query: str
    category: str = ""
    max_pages: int = 0
    since: datetime | None = None
    sort: SortOrder = SortOrder.END_DATE_RECENT
    timeout: float | None = None


def is_retryable(exc: Exception) -> bool:
    """Retry transport errors, 5xx and throttling; never policy errors."""
    if isinstance(exc, (HostNotAllowedError, InvalidInputError)):
        return False
    if isinstance(exc, HTTPStatusError):
        return (
            exc.status_code >= 500
            or exc.status_code in _RETRYABLE_STATUS
        )
    return True


class EbayScraper:
    """Crawls completed-sale search pages under a page budget.

    Every session rotates to one randomly picked user agent, paces its
    requests through the rate limiter and fetches each page through the
    retryer.  A page that still fails is recorded in the result and the
    crawl moves on to the next page.
    """

    # Cloudflare / Akamai challenge markers (checked before keyword scan)
    _CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "splashui/challenge",
    ]

    def __init__(
        self,
        settings: Settings | None = None,
        rate_limiter: RateLimiter | None = None,
        retryer: Retryer | None = None,
        parser: EbayParser | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.logger = logging.getLogger("pokeprofit.scraper.ebay")
        self._rng = rng or random.Random()
        self.rate_limiter = rate_limiter or RateLimiter(
            self.settings.REQUEST_DELAY
        )
        self.retryer = retryer or Retryer(
            RetryConfig(
                max_retries=self.settings.MAX_RETRIES,
                initial_delay=self.settings.RETRY_INITIAL_DELAY,
                max_delay=self.settings.RETRY_MAX_DELAY,
                backoff_factor=self.settings.RETRY_BACKOFF_FACTOR,
                jitter=self.settings.RETRY_JITTER,
                retryable=is_retryable,
            ),
            rng=self._rng,
        )
        self.parser = parser or EbayParser()
        self.user_agents: list[str] = list(self.settings.USER_AGENTS)
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT

    @property
    def name(self) -> str:
        return self.settings.PLATFORM

    @property
    def homepage(self) -> str:
        return self.settings.BASE_URL + "/"

    # ------------------------------------------------------------------
    # Identity & URL building
    # ------------------------------------------------------------------

    def pick_user_agent(self) -> str:
        """Pick the identity for one session."""
        if not self.user_agents:
            return DEFAULT_USER_AGENT
        return self._rng.choice(self.user_agents)

    def session_headers(self, user_agent: str) -> dict[str, str]:
        return {
            **self.settings.DEFAULT_HEADERS,
            "User-Agent": user_agent,
            "Referer": self.homepage,
        }

    def new_session(self) -> curl_requests.AsyncSession:
        """Open a browser-impersonating HTTP session."""
        return curl_requests.AsyncSession(
            impersonate=self.settings.IMPERSONATE_BROWSER,
        )

    def category_id(self, category: str) -> str:
        """Map a category token to a marketplace category id (allow-list)."""
        return self.settings.CATEGORY_IDS.get(
            category.strip().lower(),
            self.settings.DEFAULT_CATEGORY_ID,
        )

    def build_search_url(
        self,
        query: str,
        category: str = "",
        page: int = 1,
        sort: SortOrder = SortOrder.END_DATE_RECENT,
    ) -> str:
        """Build the sold-listings search URL for one page."""
        params: dict[str, str] = {
            PARAM_KEYWORD: query,
            PARAM_CATEGORY: self.category_id(category),
            PARAM_COMPLETED: "1",
            PARAM_SOLD: "1",
            PARAM_SORT: SortOrder(sort).value,
            PARAM_ITEMS_PER_PAGE: str(self.settings.ITEMS_PER_PAGE),
        }
        if page > 1:
            params[PARAM_PAGE_NUMBER] = str(page)
        return (
            self.settings.BASE_URL
            + self.settings.SEARCH_PATH
            + "?"
            + urlencode(params)
        )

    def check_host(self, url: str) -> None:
        """Raise HostNotAllowedError unless *url* targets an allowed host."""
        host = (urlsplit(url).hostname or "").lower()
        if host not in self.settings.ALLOWED_HOSTS:
            raise HostNotAllowedError(f"host not allowed: {host or url}")

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _validate_response(self, text: str) -> bool:
        """Return False for challenge pages and CAPTCHA interstitials."""
        lower = text.lower()
        for marker in self._CHALLENGE_MARKERS:
            if marker in lower:
                self.logger.warning(
                    "[ebay] Challenge page detected (marker: '%s')",
                    marker,
                )
                return False

        # Skip the keyword scan on content-rich result pages
        if "s-item" in lower and len(text) > 5000:
            return True
        for keyword in self.settings.CAPTCHA_KEYWORDS:
            if keyword in lower:
                self.logger.warning(
                    "[ebay] CAPTCHA keyword '%s' detected", keyword,
                )
                return False
        return True

    def _fetch_cloudscraper(
        self, url: str, headers: dict[str, str],
    ) -> str:
        """Fetch a page via cloudscraper (JS challenge solver)."""
        _cs: Any = cloudscraper
        scraper: Any = _cs.create_scraper()
        try:
            resp: Any = scraper.get(
                url,
                headers=headers,
                timeout=self._request_timeout,
            )
        finally:
            scraper.close()
        if resp.status_code != 200:
            raise BlockedError(
                f"cloudscraper fallback got HTTP {resp.status_code}"
            )
        text = str(resp.text)
        if not self._validate_response(text):
            raise BlockedError("challenge page persisted after fallback")
        return text

    async def _fetch_html(
        self,
        session: curl_requests.AsyncSession,
        url: str,
        headers: dict[str, str],
    ) -> str:
        """GET one page; anti-bot pages fall back to cloudscraper once."""
        self.check_host(url)
        resp = await session.get(
            url,
            headers=headers,
            timeout=self._request_timeout,
        )
        self.check_host(str(resp.url or url))
        if resp.status_code != 200:
            self.logger.warning(
                "[ebay] HTTP %d for %s", resp.status_code, url,
            )
            raise HTTPStatusError(resp.status_code, url)

        text = resp.text
        if self._validate_response(text):
            return text

        self.logger.info(
            "[ebay] curl_cffi blocked, falling back to cloudscraper",
        )
        return await asyncio.to_thread(
            self._fetch_cloudscraper, url, headers,
        )

    async def _fetch_page(
        self,
        session: curl_requests.AsyncSession,
        url: str,
        headers: dict[str, str],
    ) -> list[RawSale]:
        html = await self._fetch_html(session, url, headers)
        soup = BeautifulSoup(html, "lxml")
        return self.parser.parse_search_results(soup)

    # ------------------------------------------------------------------
    # Public entry-point
    # ------------------------------------------------------------------

    async def scrape(self, options: ScrapeOptions) -> ScrapeResult:
        """Run one crawl session and return everything collected.

        Raises:
            InvalidInputError: empty query, before any request is made.
            ScrapeTimeoutError: ``options.timeout`` elapsed; the partial
                result is available as ``exc.result``.
            asyncio.CancelledError: the calling task was cancelled.
        """
        query = options.query.strip()
        if not query:
            raise InvalidInputError("query is required")

        max_pages = (
            options.max_pages
            if options.max_pages > 0
            else self.settings.MAX_PAGES
        )
        since = options.since or (
            datetime.now() - timedelta(days=self.settings.LOOKBACK_DAYS)
        )

        result = ScrapeResult()
        started = time.monotonic()
        user_agent = self.pick_user_agent()
        headers = self.session_headers(user_agent)
        session = self.new_session()
        self.logger.info(
            "[ebay] Scrape started: query='%s' category='%s' "
            "max_pages=%d since=%s",
            query,
            options.category,
            max_pages,
            since.date(),
        )

        try:
            async with asyncio.timeout(options.timeout):
                await self._crawl(
                    session, headers, query, options,
                    max_pages, since, result,
                )
        except TimeoutError as exc:
            if options.timeout is None:
                raise
            self.logger.warning(
                "[ebay] Scrape deadline hit after %d pages",
                result.pages_scraped,
            )
            raise ScrapeTimeoutError(result, options.timeout) from exc
        finally:
            result.duration = timedelta(
                seconds=time.monotonic() - started
            )
            await session.close()

        self.logger.info(
            "[ebay] Scrape finished: %d pages, %d sales, %d errors in %.1fs",
            result.pages_scraped,
            result.sale_count,
            len(result.errors),
            result.duration.total_seconds(),
        )
        return result

    async def _crawl(
        self,
        session: curl_requests.AsyncSession,
        headers: dict[str, str],
        query: str,
        options: ScrapeOptions,
        max_pages: int,
        since: datetime,
        result: ScrapeResult,
    ) -> None:
        """Paginate in page order, appending survivors to *result*."""
        for page in range(1, max_pages + 1):
            await self.rate_limiter.wait()
            url = self.build_search_url(
                query, options.category, page, options.sort,
            )
            self.logger.info(
                "[ebay] Fetching page %d/%d (%d so far)",
                page,
                max_pages,
                result.sale_count,
            )

            try:
                page_sales = await self.retryer.run(
                    functools.partial(
                        self._fetch_page, session, url, headers,
                    )
                )
            except ScrapeError as exc:
                self.logger.error(
                    "[ebay] Page %d failed: %s", page, exc,
                )
                page_error = ScrapeError(
                    f"failed to scrape page {page}: {exc}"
                )
                page_error.__cause__ = exc
                result.add_error(page_error)
                continue

            kept = [s for s in page_sales if s.sold_at >= since]
            for sale in kept:
                result.add_sale(sale)
            result.pages_scraped += 1

            if page > 1 and not kept:
                self.logger.info(
                    "[ebay] Page %d empty, end of results", page,
                )
                break
