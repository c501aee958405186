# pokeprofit/models/sale.py

"""Sale data models for scraped listings and persisted sales."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal


@dataclass(frozen=True)
class RawSale:
    """A single sold listing as scraped, before normalization."""

    title: str
    price: Decimal
    sold_at: datetime
    url: str = ""
    currency: str = "EUR"
    platform: str = "ebay"
    metadata: dict[str, str] = field(
        default_factory=lambda: dict[str, str]()
    )


@dataclass
class ScrapeResult:
    """Output of one crawl session.

    Sales keep page order and DOM order within a page.  Page-level
    failures are collected in ``errors`` instead of aborting the session.
    """

    sales: list[RawSale] = field(
        default_factory=lambda: list[RawSale]()
    )
    pages_scraped: int = 0
    duration: timedelta = timedelta(0)
    errors: list[Exception] = field(
        default_factory=lambda: list[Exception]()
    )

    def add_sale(self, sale: RawSale) -> None:
        self.sales.append(sale)

    def add_error(self, error: Exception) -> None:
        self.errors.append(error)

    @property
    def sale_count(self) -> int:
        return len(self.sales)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


@dataclass
class Sale:
    """A recognized sale attached to a canonical product."""

    product_id: str
    title: str
    price: Decimal
    sold_at: datetime
    url: str | None = None
    analysis_id: str | None = None
    platform: str = "ebay"
    currency: str = "EUR"
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    scraped_at: datetime = field(default_factory=datetime.now)
