# pokeprofit/scrapers/ebay_parser.py

"""HTML parser for eBay.fr sold-listing search result pages."""

import json
import logging
import re
import unicodedata
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from bs4 import BeautifulSoup, Tag

from pokeprofit.config.settings import Settings
from pokeprofit.models.sale import RawSale

logger = logging.getLogger("pokeprofit.parser")

# "159,99 EUR", "1 299,00 €", "EUR 12,50"
_PRICE_RE = re.compile(
    r"(\d+(?:[.,]\d+)*)\s*(?:EUR|€)|(?:EUR|€)\s*(\d+(?:[.,]\d+)*)"
)
_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)*")
_DIGIT_GAP_RE = re.compile(r"(?<=\d)\s+(?=\d)")

# Applied to accent-stripped lowercase text
_SOLD_DATE_RE = re.compile(
    r"(\d{1,2})\s+"
    r"(janv?|fevr?|mars|avr|mai|juin|juil|aout|sept?|oct|nov|dec)[a-z]*\.?"
    r"(?:\s+(\d{4}))?"
)
_RESULT_COUNT_RE = re.compile(r"(\d+(?:[\s.]\d{3})*)\s*resultats?")
_ITEM_ID_RE = re.compile(r"/itm/(?:[^/]+/)?(\d+)")

_MONTHS: dict[str, int] = {
    "jan": 1,
    "janv": 1,
    "fev": 2,
    "fevr": 2,
    "mars": 3,
    "avr": 4,
    "mai": 5,
    "juin": 6,
    "juil": 7,
    "aout": 8,
    "sep": 9,
    "sept": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

_PLACEHOLDER_TITLES = ("shop on ebay", "boutique ebay")


def _strip_accents(text: str) -> str:
    """Decompose, drop combining marks, recompose."""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(
        ch for ch in decomposed if not unicodedata.combining(ch)
    )
    return unicodedata.normalize("NFC", stripped)


def load_selectors(source: str = "ebay") -> dict[str, str]:
    """Load CSS selectors for *source* from selectors.json."""
    with open(Settings.SELECTORS_PATH, encoding="utf-8") as f:
        all_selectors: dict[str, Any] = json.load(f)
    result: dict[str, str] = all_selectors.get(source, {})
    return result


class EbayParser:
    """Turns one search results page into :class:`RawSale` records.

    The parser never raises on malformed listings: an unreadable price
    drops the listing, an unreadable sold date falls back to "now".
    """

    def __init__(
        self,
        selectors: dict[str, str] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.selectors = selectors or load_selectors("ebay")
        self._clock = clock

    # ------------------------------------------------------------------
    # Page-level extraction
    # ------------------------------------------------------------------

    def parse_search_results(
        self, soup: BeautifulSoup,
    ) -> list[RawSale]:
        """Extract every valid sold listing, in DOM order."""
        sales: list[RawSale] = []
        cards = soup.select(self.selectors.get("product_card", ".s-item"))
        skipped = 0
        for card in cards:
            sale = self._parse_card(card)
            if sale is None:
                skipped += 1
                continue
            sales.append(sale)

        logger.debug(
            "Parsed %d sales from %d cards (%d skipped)",
            len(sales),
            len(cards),
            skipped,
        )
        return sales

    def _select_text(self, card: Tag, key: str) -> str:
        selector = self.selectors.get(key, "")
        if not selector:
            return ""
        el = card.select_one(selector)
        return el.get_text(" ", strip=True) if el else ""

    def _parse_title(self, card: Tag) -> str:
        title_el = card.select_one(self.selectors.get("title", ""))
        if title_el is None:
            return ""
        noise = self.selectors.get("title_noise", "")
        if noise:
            for el in title_el.select(noise):
                el.decompose()
        return title_el.get_text(" ", strip=True)

    def _parse_card(self, card: Tag) -> RawSale | None:
        """Parse one result card; None for placeholders or invalid items."""
        title = self._parse_title(card)
        if not title or title.lower().startswith(_PLACEHOLDER_TITLES):
            return None

        price = self.parse_price(self._select_text(card, "price"))
        if price <= 0:
            return None

        url = ""
        link_el = card.select_one(self.selectors.get("url", ""))
        if link_el is not None:
            raw_href = link_el.get("href", "")
            url = self.clean_url(str(raw_href) if raw_href else "")

        sold_at = self.parse_sold_date(
            self._select_text(card, "sold_date")
        ) or self._clock()

        metadata: dict[str, str] = {}
        condition = self._select_text(card, "condition")
        if condition:
            metadata["condition"] = condition
        shipping = self._select_text(card, "shipping")
        if shipping:
            metadata["shipping"] = shipping
        item_match = _ITEM_ID_RE.search(url)
        if item_match:
            metadata["item_id"] = item_match.group(1)

        return RawSale(
            title=title,
            price=price,
            currency=Settings.CURRENCY,
            platform=Settings.PLATFORM,
            sold_at=sold_at,
            url=url,
            metadata=metadata,
        )

    # ------------------------------------------------------------------
    # Field parsers
    # ------------------------------------------------------------------

    @staticmethod
    def parse_price(text: str | None) -> Decimal:
        """Extract a price like '159,99 €' or '100 à 150 €' (lower bound).

        Returns ``Decimal(0)`` when no amount can be read.
        """
        if not text:
            return Decimal(0)
        cleaned = text.replace("\xa0", " ").replace("\u202f", " ").strip()

        # Range listings: keep the lower bound
        cleaned = re.split(r"\s+(?:à|to)\s+", cleaned, maxsplit=1)[0]
        cleaned = _DIGIT_GAP_RE.sub("", cleaned)

        match = _PRICE_RE.search(cleaned)
        if match:
            token = match.group(1) or match.group(2)
        else:
            fallback = _NUMBER_RE.search(cleaned)
            if fallback is None:
                return Decimal(0)
            token = fallback.group(0)

        if "," in token and "." in token:
            # Right-most separator is the decimal mark
            if token.rfind(",") > token.rfind("."):
                token = token.replace(".", "")  # 1.299,00
            else:
                token = token.replace(",", "")  # 1,299.00
        token = token.replace(",", ".")
        if token.count(".") > 1:
            head, _, tail = token.rpartition(".")
            token = head.replace(".", "") + "." + tail

        try:
            return Decimal(token)
        except InvalidOperation:
            logger.debug("Unparseable price text: %r", text)
            return Decimal(0)

    def parse_sold_date(self, text: str | None) -> datetime | None:
        """Read a 'Vendu le 12 janv. 2024' fragment.

        A missing year means the current year, rolled back one year when
        that would put the sale in the future.  Returns None when no
        sold-date fragment is present.
        """
        if not text:
            return None
        lowered = _strip_accents(text.lower().strip())
        match = _SOLD_DATE_RE.search(lowered)
        if match is None:
            return None

        now = self._clock()
        day = int(match.group(1))
        month = self.parse_month(match.group(2))
        explicit_year = match.group(3) is not None
        year = int(match.group(3)) if explicit_year else now.year

        try:
            parsed = datetime(year, month, day)
        except ValueError:
            if explicit_year:
                logger.debug("Invalid sold date in %r", text)
                return None
            # 29 Feb without a year: latest leap year on or before now
            parsed = self._latest_valid_date(year, month, day)
            if parsed is None:
                logger.debug("Invalid sold date in %r", text)
                return None

        if parsed > now:
            rolled = self._latest_valid_date(parsed.year, month, day)
            if rolled is None:
                logger.debug("Invalid sold date in %r", text)
                return None
            parsed = rolled
        return parsed

    @staticmethod
    def _latest_valid_date(
        year: int, month: int, day: int,
    ) -> datetime | None:
        for candidate in range(year - 1, year - 5, -1):
            try:
                return datetime(candidate, month, day)
            except ValueError:
                continue
        return None

    @staticmethod
    def parse_month(name: str) -> int:
        """Map a French month abbreviation to its number (January if unknown)."""
        key = _strip_accents(name.lower().strip()).rstrip(".")
        return _MONTHS.get(key, 1)

    @staticmethod
    def clean_url(href: str) -> str:
        """Drop query string and fragment, keeping the listing path."""
        if not href:
            return ""
        parts = urlsplit(href)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))

    # ------------------------------------------------------------------
    # Pagination signals
    # ------------------------------------------------------------------

    def has_next_page(self, soup: BeautifulSoup) -> bool:
        selector = self.selectors.get("next_page", ".pagination__next")
        return soup.select_one(selector) is not None

    def get_next_page_url(self, soup: BeautifulSoup) -> str:
        selector = self.selectors.get("next_page", ".pagination__next")
        el = soup.select_one(selector)
        if el is None:
            return ""
        href = el.get("href", "")
        return str(href) if href else ""

    def get_result_count(self, soup: BeautifulSoup) -> int:
        """Read the '1 234 résultats' heading; 0 when absent."""
        text = self._select_text(soup, "result_count")
        lowered = _strip_accents(text.replace("\xa0", " ").lower())
        match = _RESULT_COUNT_RE.search(lowered)
        if match is None:
            return 0
        return int(re.sub(r"[\s.]", "", match.group(1)))
