# pokeprofit/services/health_checker.py

"""Marketplace connectivity health checker."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime

from pokeprofit.scrapers.ebay_scraper import EbayScraper

logger = logging.getLogger("pokeprofit.health")


@dataclass
class HealthResult:
    """Result of a single marketplace health probe."""

    platform: str
    status: str  # "ok", "slow", "down"
    latency_ms: float
    message: str
    status_code: int | None = None
    checked_at: datetime = field(default_factory=datetime.now)

    @property
    def healthy(self) -> bool:
        return self.status != "down"


async def probe_target(scraper: EbayScraper) -> HealthResult:
    """Fetch the marketplace home page once and time it.

    Uses its own session so crawl state (rate limiter, retry budget)
    is never touched.
    """
    platform = scraper.name
    homepage = scraper.homepage
    timeout = scraper.settings.HEALTH_TIMEOUT
    slow_ms = scraper.settings.HEALTH_SLOW_MS

    start = time.monotonic()
    session = scraper.new_session()
    try:
        scraper.check_host(homepage)
        resp = await session.get(
            homepage,
            headers=scraper.session_headers(scraper.pick_user_agent()),
            timeout=timeout,
        )
        elapsed_ms = (time.monotonic() - start) * 1000

        if resp.status_code != 200:
            return HealthResult(
                platform=platform,
                status="down",
                latency_ms=elapsed_ms,
                message=f"HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

        if elapsed_ms > slow_ms:
            return HealthResult(
                platform=platform,
                status="slow",
                latency_ms=elapsed_ms,
                message="High latency",
                status_code=resp.status_code,
            )

        return HealthResult(
            platform=platform,
            status="ok",
            latency_ms=elapsed_ms,
            message="",
            status_code=resp.status_code,
        )

    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(
            platform=platform,
            status="down",
            latency_ms=elapsed_ms,
            message=str(exc)[:80],
        )
    finally:
        await session.close()


class HealthChecker:
    """Runs the health probe against the configured marketplace."""

    def __init__(self, scraper: EbayScraper | None = None) -> None:
        self.scraper = scraper or EbayScraper()

    async def check(self) -> HealthResult:
        result = await probe_target(self.scraper)
        logger.info(
            "Health check %s: %s (%.0fms) %s",
            result.platform,
            result.status,
            result.latency_ms,
            result.message,
        )
        return result
