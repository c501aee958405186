# pokeprofit/models/product.py

"""Product data models: categories, canonical products, recognitions."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class ProductCategory(str, Enum):
    """Type of sealed or single trading-card product."""

    BOOSTER = "booster"
    DISPLAY = "display"
    ETB = "etb"
    COLLECTION = "collection"
    BUNDLE = "bundle"
    TIN = "tin"
    SINGLE = "single"

    @property
    def display_name(self) -> str:
        """Human-readable label used in reports."""
        return _DISPLAY_NAMES[self]

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Return True if *value* names a known category."""
        return value in cls._value2member_map_


_DISPLAY_NAMES: dict[ProductCategory, str] = {
    ProductCategory.BOOSTER: "Booster",
    ProductCategory.DISPLAY: "Display",
    ProductCategory.ETB: "ETB",
    ProductCategory.COLLECTION: "Coffret",
    ProductCategory.BUNDLE: "Bundle",
    ProductCategory.TIN: "Tin",
    ProductCategory.SINGLE: "Single",
}


@dataclass
class NormalizedProduct:
    """Recognition output for a single listing title.

    Ephemeral: the analyzer turns accepted recognitions into
    :class:`Product` rows, it never stores these directly.
    """

    normalized_name: str = ""
    category: ProductCategory | None = None
    set_name: str = ""
    set_code: str = ""
    msrp: Decimal | None = None
    confidence: float = 0.0


@dataclass
class Product:
    """A canonical product, unique by ``normalized_name``."""

    normalized_name: str
    category: ProductCategory
    set_name: str | None = None
    set_code: str | None = None
    msrp_eur: Decimal | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_normalized(cls, normalized: NormalizedProduct) -> "Product":
        """Build a new product row from an accepted recognition."""
        return cls(
            normalized_name=normalized.normalized_name,
            category=normalized.category or ProductCategory.SINGLE,
            set_name=normalized.set_name or None,
            set_code=normalized.set_code or None,
            msrp_eur=normalized.msrp,
        )
