# pokeprofit/services/profit.py

"""Resale profitability: margins after marketplace fees."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from pokeprofit.config.settings import Settings
from pokeprofit.models.stats import ProductStats

_HUNDRED = Decimal(100)
_ZERO = Decimal(0)


class ProfitabilityLevel(str, Enum):
    """ROI tier of a product."""

    EXCELLENT = "excellent"  # > 30% ROI
    GOOD = "good"            # 15-30% ROI
    MARGINAL = "marginal"    # 0-15% ROI
    LOSS = "loss"            # < 0% ROI
    UNKNOWN = "unknown"      # No MSRP data

    @property
    def style(self) -> str:
        """Rich style used when rendering this tier."""
        return _LEVEL_STYLES[self]


_LEVEL_STYLES: dict[ProfitabilityLevel, str] = {
    ProfitabilityLevel.EXCELLENT: "bold green",
    ProfitabilityLevel.GOOD: "green",
    ProfitabilityLevel.MARGINAL: "yellow",
    ProfitabilityLevel.LOSS: "red",
    ProfitabilityLevel.UNKNOWN: "dim",
}


@dataclass(frozen=True)
class ProfitResult:
    """Margins for buying at MSRP and reselling at the average price."""

    gross_margin_eur: Decimal = _ZERO
    gross_margin_percent: Decimal = _ZERO
    net_margin_eur: Decimal = _ZERO
    net_margin_percent: Decimal = _ZERO
    fees_eur: Decimal = _ZERO
    roi: Decimal = _ZERO
    is_profitable: bool = False


def profitability_level(roi: Decimal) -> ProfitabilityLevel:
    if roi > 30:
        return ProfitabilityLevel.EXCELLENT
    if roi > 15:
        return ProfitabilityLevel.GOOD
    if roi >= 0:
        return ProfitabilityLevel.MARGINAL
    return ProfitabilityLevel.LOSS


def profitability_level_for_stats(stats: ProductStats) -> ProfitabilityLevel:
    if stats.margin_percent is None:
        return ProfitabilityLevel.UNKNOWN
    return profitability_level(stats.margin_percent)


def format_margin_eur(margin: Decimal) -> str:
    sign = "+" if margin > 0 else ""
    return f"{sign}{margin:.2f}€"


def format_margin_percent(margin: Decimal) -> str:
    sign = "+" if margin > 0 else ""
    return f"{sign}{margin:.1f}%"


class ProfitCalculator:
    """Computes resale margins with a flat fee rate on the sale price."""

    def __init__(self, fees: float | Decimal | None = None) -> None:
        rate = Settings.SELLER_FEES if fees is None else fees
        self.fees = Decimal(str(rate))

    def calculate(self, avg_price: Decimal, msrp: Decimal) -> ProfitResult:
        gross = avg_price - msrp
        fees = avg_price * self.fees
        net = gross - fees

        gross_pct = net_pct = _ZERO
        if msrp > 0:
            gross_pct = gross / msrp * _HUNDRED
            net_pct = net / msrp * _HUNDRED

        return ProfitResult(
            gross_margin_eur=gross,
            gross_margin_percent=gross_pct,
            net_margin_eur=net,
            net_margin_percent=net_pct,
            fees_eur=fees,
            roi=net_pct,
            is_profitable=net > 0,
        )

    def calculate_for_stats(self, stats: ProductStats) -> ProfitResult:
        """Margins for a product; all zero when it has no MSRP."""
        if stats.msrp_eur is None or stats.msrp_eur <= 0:
            return ProfitResult()
        return self.calculate(stats.avg_price, stats.msrp_eur)

    def calculate_batch(
        self, stats: list[ProductStats],
    ) -> dict[str, ProfitResult]:
        return {s.normalized_name: self.calculate_for_stats(s) for s in stats}

    def break_even_price(self, purchase_price: Decimal) -> Decimal:
        """Lowest sale price that recovers *purchase_price* after fees."""
        return purchase_price / (1 - self.fees)

    def minimum_profitable_price(
        self, purchase_price: Decimal, target_margin_percent: float,
    ) -> Decimal:
        """Sale price needed to net *target_margin_percent* after fees."""
        target = Decimal(str(target_margin_percent)) / _HUNDRED
        return purchase_price * (1 + target) / (1 - self.fees)
