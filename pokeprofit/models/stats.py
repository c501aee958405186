# pokeprofit/models/stats.py

"""Aggregated per-product volume and price statistics."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pokeprofit.models.product import ProductCategory


@dataclass
class ProductStats:
    """Rolling-window sales statistics for one canonical product."""

    product_id: str
    normalized_name: str
    category: ProductCategory
    sales_count_30d: int
    avg_price: Decimal
    min_price: Decimal
    max_price: Decimal
    set_name: str | None = None
    msrp_eur: Decimal | None = None
    price_stddev: Decimal | None = None
    margin_eur: Decimal | None = None
    margin_percent: Decimal | None = None
    last_sale_at: datetime | None = None

    @property
    def has_msrp(self) -> bool:
        return self.msrp_eur is not None and self.msrp_eur > 0

    @property
    def has_margin(self) -> bool:
        return self.margin_percent is not None

    @property
    def is_profitable(self) -> bool:
        """True if the average sale price is above MSRP."""
        return self.margin_percent is not None and self.margin_percent > 0

    @property
    def price_range(self) -> Decimal:
        return self.max_price - self.min_price

    def format_margin_percent(self) -> str:
        if self.margin_percent is None:
            return "N/A"
        sign = "+" if self.margin_percent > 0 else ""
        return f"{sign}{self.margin_percent:.1f}%"

    def format_avg_price(self) -> str:
        return f"{self.avg_price:.2f}€"

    def format_msrp(self) -> str:
        if not self.has_msrp:
            return "N/A"
        return f"{self.msrp_eur:.2f}€"
