# pokeprofit/config/settings.py

"""Central configuration for the pokeprofit analyzer."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_int(key: str, default: int) -> int:
    """Read an integer from the environment, ignoring bad values."""
    raw = os.getenv(key, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_list(key: str, default: list[str]) -> list[str]:
    """Read a comma-separated list from the environment."""
    raw = os.getenv(key, "")
    if not raw:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """Central configuration for the pokeprofit analyzer."""

    # --- Scraping ---
    REQUEST_DELAY: float = (
        _env_int("SCRAPER_RATE_LIMIT_MS", 2000) / 1000.0
    )                                   # Seconds between page requests
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = _env_int("SCRAPER_MAX_RETRIES", 3)
    MAX_PAGES: int = 10                 # Default page budget per session
    ITEMS_PER_PAGE: int = 100
    LOOKBACK_DAYS: int = 30             # Default `since` window

    # --- Retry backoff ---
    RETRY_INITIAL_DELAY: float = 2.0
    RETRY_MAX_DELAY: float = 30.0
    RETRY_BACKOFF_FACTOR: float = 2.0
    RETRY_JITTER: bool = True

    # --- Token bucket ---
    TOKEN_BUCKET_POLL_INTERVAL: float = 0.1

    # --- Anti-bot ---
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
        "pardon our interruption",
    ]

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome120"
    USER_AGENTS: list[str] = _env_list(
        "SCRAPER_USER_AGENTS",
        [
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        ],
    )
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "fr-FR,fr;q=0.9,en;q=0.6",
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Target marketplace ---
    BASE_URL: str = "https://www.ebay.fr"
    SEARCH_PATH: str = "/sch/i.html"
    ALLOWED_HOSTS: frozenset[str] = frozenset({"www.ebay.fr", "ebay.fr"})
    PLATFORM: str = "ebay"
    CURRENCY: str = "EUR"
    DEFAULT_CATEGORY_ID: str = "183454"  # Pokemon TCG
    CATEGORY_IDS: dict[str, str] = {
        "all": "183454",
        "display": "183454",
        "etb": "183454",
        "collection": "183454",
        "booster": "183454",
        "bundle": "183454",
        "tin": "183454",
        "single": "183454",
    }

    # --- Health probe ---
    HEALTH_TIMEOUT: int = 10            # Seconds
    HEALTH_SLOW_MS: float = 5000.0

    # --- Analysis ---
    MIN_CONFIDENCE: float = 0.3         # Acceptance floor for normalization
    PROGRESS_EVERY: int = 50            # Records between progress events
    STALE_RUN_MINUTES: int = 30
    SELLER_FEES: float = 0.13           # Final value + payment processing
    STATS_WINDOW_DAYS: int = 30

    # --- Logging ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = BASE_DIR / "pokeprofit" / "config" / "selectors.json"
    LOGS_DIR: Path = BASE_DIR / "logs"
    ANALYSIS_DB_PATH: Path = Path(
        os.getenv(
            "POKEPROFIT_DB_PATH",
            str(BASE_DIR / "data" / "pokeprofit.db"),
        )
    )
