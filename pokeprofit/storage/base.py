# pokeprofit/storage/base.py

"""Narrow persistence interfaces consumed by the volume analyzer."""

from typing import Protocol

from pokeprofit.models.analysis import AnalysisRun
from pokeprofit.models.product import Product
from pokeprofit.models.sale import Sale


class ProductStore(Protocol):
    """Canonical products keyed by their unique normalized name."""

    def find_by_canonical_name(self, name: str) -> Product:
        """Return the product or raise ProductNotFoundError."""
        ...

    def create(self, product: Product) -> None:
        """Insert; raise DuplicateProductError if the name exists."""
        ...

    def create_or_find(self, product: Product) -> Product:
        """Insert, or return the row that won a concurrent insert."""
        ...


class SaleStore(Protocol):
    """Sales deduplicated by listing URL."""

    def bulk_insert(self, sales: list[Sale]) -> int:
        """Insert all new sales; return how many were actually inserted."""
        ...


class RunStore(Protocol):
    """Analysis run records."""

    def create_run(self, run: AnalysisRun) -> None: ...

    def update_run(self, run: AnalysisRun) -> None: ...

    def get_running(self) -> AnalysisRun | None: ...

    def mark_stale_running(self, older_than_minutes: int) -> int:
        """Fail runs stuck in ``running``; return how many were marked."""
        ...
