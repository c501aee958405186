# pokeprofit/storage/analysis_db.py

"""SQLite-backed store for products, sales and analysis runs."""

import logging
import math
import sqlite3
import threading
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from pathlib import Path

from pokeprofit.config.settings import Settings
from pokeprofit.errors import (
    DuplicateProductError,
    InvalidInputError,
    ProductNotFoundError,
)
from pokeprofit.models.analysis import AnalysisRun, RunState
from pokeprofit.models.product import Product, ProductCategory
from pokeprofit.models.sale import Sale
from pokeprofit.models.stats import ProductStats

logger = logging.getLogger("pokeprofit.storage")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    id              TEXT PRIMARY KEY,
    normalized_name TEXT NOT NULL UNIQUE,
    category        TEXT NOT NULL,
    set_name        TEXT,
    set_code        TEXT,
    msrp_eur        REAL,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sales (
    id          TEXT PRIMARY KEY,
    product_id  TEXT NOT NULL
                REFERENCES products(id) ON DELETE CASCADE,
    analysis_id TEXT,
    platform    TEXT NOT NULL DEFAULT 'ebay',
    title       TEXT NOT NULL,
    price       REAL NOT NULL,
    currency    TEXT NOT NULL DEFAULT 'EUR',
    sold_at     TEXT NOT NULL,
    url         TEXT UNIQUE,
    scraped_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sales_product_date
    ON sales(product_id, sold_at);

CREATE TABLE IF NOT EXISTS analyses (
    id             TEXT PRIMARY KEY,
    started_at     TEXT NOT NULL,
    completed_at   TEXT,
    status         TEXT NOT NULL,
    products_count INTEGER NOT NULL DEFAULT 0,
    sales_count    INTEGER NOT NULL DEFAULT 0,
    search_query   TEXT,
    error_message  TEXT
);

CREATE INDEX IF NOT EXISTS idx_analyses_status
    ON analyses(status, started_at);
"""

_PRODUCT_COLUMNS = (
    "id, normalized_name, category, set_name, set_code, "
    "msrp_eur, created_at, updated_at"
)
_RUN_COLUMNS = (
    "id, started_at, completed_at, status, products_count, "
    "sales_count, search_query, error_message"
)


class StatsSort(str, Enum):
    """Orderings accepted by :meth:`AnalysisDB.get_product_stats`."""

    VOLUME = "volume"
    MARGIN = "margin"
    PRICE = "price"


# Closed mapping; caller input never reaches the SQL text
_SORT_COLUMNS: dict[StatsSort, str] = {
    StatsSort.VOLUME: "sales_count_30d",
    StatsSort.MARGIN: "margin_percent",
    StatsSort.PRICE: "avg_price",
}


def _ts(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat(sep=" ", timespec="seconds")


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _money(value: float | None) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(round(value, 2)))


class AnalysisDB:
    """SQLite store implementing the product, sale and run interfaces.

    The connection is shared across threads (the analyzer calls in via
    ``asyncio.to_thread``) and every statement runs under one lock.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.ANALYSIS_DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        logger.debug("AnalysisDB opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── Products ─────────────────────────────────────────

    @staticmethod
    def _row_to_product(row: tuple[object, ...]) -> Product:
        msrp = row[5]
        return Product(
            id=str(row[0]),
            normalized_name=str(row[1]),
            category=ProductCategory(str(row[2])),
            set_name=str(row[3]) if row[3] is not None else None,
            set_code=str(row[4]) if row[4] is not None else None,
            msrp_eur=(
                _money(float(str(msrp))) if msrp is not None else None
            ),
            created_at=datetime.fromisoformat(str(row[6])),
            updated_at=datetime.fromisoformat(str(row[7])),
        )

    def find_by_canonical_name(self, name: str) -> Product:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products "
                "WHERE normalized_name = ?",
                (name,),
            ).fetchone()
        if row is None:
            raise ProductNotFoundError(f"product not found: {name}")
        return self._row_to_product(row)

    def create(self, product: Product) -> None:
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    f"INSERT INTO products ({_PRODUCT_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        product.id,
                        product.normalized_name,
                        ProductCategory(product.category).value,
                        product.set_name,
                        product.set_code,
                        (
                            float(product.msrp_eur)
                            if product.msrp_eur is not None
                            else None
                        ),
                        _ts(product.created_at),
                        _ts(product.updated_at),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateProductError(
                f"product already exists: {product.normalized_name}"
            ) from exc
        logger.debug("Created product '%s'", product.normalized_name)

    def create_or_find(self, product: Product) -> Product:
        """Insert *product*, or return the existing row on name conflict."""
        try:
            self.create(product)
        except DuplicateProductError:
            logger.debug(
                "Product '%s' created concurrently, re-querying",
                product.normalized_name,
            )
            return self.find_by_canonical_name(product.normalized_name)
        return product

    def count_products(self) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM products",
            ).fetchone()
        return int(row[0])

    # ── Sales ────────────────────────────────────────────

    def bulk_insert(self, sales: list[Sale]) -> int:
        """Insert sales, skipping listing URLs already stored.

        Returns the number of rows actually inserted.
        """
        if not sales:
            return 0
        rows = [
            (
                s.id,
                s.product_id,
                s.analysis_id,
                s.platform,
                s.title,
                float(s.price),
                s.currency,
                _ts(s.sold_at),
                s.url or None,
                _ts(s.scraped_at),
            )
            for s in sales
        ]
        with self._lock, self._conn:
            before = self._conn.total_changes
            self._conn.executemany(
                "INSERT OR IGNORE INTO sales "
                "(id, product_id, analysis_id, platform, title, price, "
                " currency, sold_at, url, scraped_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
            inserted = self._conn.total_changes - before
        logger.info(
            "Inserted %d/%d sales (%d duplicates skipped)",
            inserted,
            len(sales),
            len(sales) - inserted,
        )
        return inserted

    def count_sales(self) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM sales",
            ).fetchone()
        return int(row[0])

    # ── Analysis runs ────────────────────────────────────

    @staticmethod
    def _row_to_run(row: tuple[object, ...]) -> AnalysisRun:
        return AnalysisRun(
            id=str(row[0]),
            started_at=datetime.fromisoformat(str(row[1])),
            completed_at=_parse_ts(str(row[2]) if row[2] else None),
            status=RunState(str(row[3])),
            products_count=int(str(row[4])),
            sales_count=int(str(row[5])),
            search_query=str(row[6]) if row[6] is not None else None,
            error_message=str(row[7]) if row[7] is not None else None,
        )

    def create_run(self, run: AnalysisRun) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                f"INSERT INTO analyses ({_RUN_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    run.id,
                    _ts(run.started_at),
                    _ts(run.completed_at),
                    run.status.value,
                    run.products_count,
                    run.sales_count,
                    run.search_query,
                    run.error_message,
                ),
            )

    def update_run(self, run: AnalysisRun) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE analyses SET completed_at = ?, status = ?, "
                "products_count = ?, sales_count = ?, "
                "error_message = ? WHERE id = ?",
                (
                    _ts(run.completed_at),
                    run.status.value,
                    run.products_count,
                    run.sales_count,
                    run.error_message,
                    run.id,
                ),
            )

    def get_run(self, run_id: str) -> AnalysisRun | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_RUN_COLUMNS} FROM analyses WHERE id = ?",
                (run_id,),
            ).fetchone()
        return self._row_to_run(row) if row else None

    def get_running(self) -> AnalysisRun | None:
        """Most recent run still in the ``running`` state."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_RUN_COLUMNS} FROM analyses "
                "WHERE status = ? ORDER BY started_at DESC LIMIT 1",
                (RunState.RUNNING.value,),
            ).fetchone()
        return self._row_to_run(row) if row else None

    def get_latest(self) -> AnalysisRun | None:
        """Most recently completed run."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_RUN_COLUMNS} FROM analyses "
                "WHERE status = ? ORDER BY completed_at DESC LIMIT 1",
                (RunState.COMPLETED.value,),
            ).fetchone()
        return self._row_to_run(row) if row else None

    def mark_stale_running(
        self,
        older_than_minutes: int,
        now: datetime | None = None,
    ) -> int:
        """Fail runs left ``running`` by a crashed process."""
        current = now or datetime.now()
        cutoff = current - timedelta(minutes=older_than_minutes)
        with self._lock, self._conn:
            cur = self._conn.execute(
                "UPDATE analyses SET status = ?, completed_at = ?, "
                "error_message = ? "
                "WHERE status = ? AND started_at < ?",
                (
                    RunState.FAILED.value,
                    _ts(current),
                    f"marked stale after {older_than_minutes} minutes",
                    RunState.RUNNING.value,
                    _ts(cutoff),
                ),
            )
            count = cur.rowcount
        if count:
            logger.warning("Marked %d stale analysis runs as failed", count)
        return count

    # ── Statistics ───────────────────────────────────────

    def get_product_stats(
        self,
        category: ProductCategory | str | None = None,
        sort_by: StatsSort | str = StatsSort.VOLUME,
        descending: bool = True,
        min_sales: int = 1,
        limit: int = 10,
        now: datetime | None = None,
    ) -> list[ProductStats]:
        """Per-product volume and margin over the rolling stats window.

        Raises:
            InvalidInputError: unknown category or sort key.
        """
        try:
            sort_key = StatsSort(sort_by)
            cat = ProductCategory(category) if category else None
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc

        cutoff = (now or datetime.now()) - timedelta(
            days=Settings.STATS_WINDOW_DAYS
        )
        query = (
            "SELECT p.id, p.normalized_name, p.category, p.set_name, "
            "       p.msrp_eur, "
            "       COUNT(s.id) AS sales_count_30d, "
            "       COALESCE(AVG(s.price), 0) AS avg_price, "
            "       COALESCE(MIN(s.price), 0) AS min_price, "
            "       COALESCE(MAX(s.price), 0) AS max_price, "
            "       SUM(s.price * s.price) AS sum_sq, "
            "       CASE WHEN p.msrp_eur > 0 "
            "            THEN (COALESCE(AVG(s.price), 0) - p.msrp_eur) "
            "                 / p.msrp_eur * 100 "
            "       END AS margin_percent, "
            "       MAX(s.sold_at) AS last_sale_at "
            "FROM products p "
            "LEFT JOIN sales s ON s.product_id = p.id "
            "     AND s.sold_at > ? "
        )
        params: list[object] = [_ts(cutoff)]
        if cat is not None:
            query += "WHERE p.category = ? "
            params.append(cat.value)
        query += (
            "GROUP BY p.id, p.normalized_name, p.category, "
            "         p.set_name, p.msrp_eur "
        )
        if min_sales > 0:
            query += "HAVING COUNT(s.id) >= ? "
            params.append(min_sales)

        column = _SORT_COLUMNS[sort_key]
        direction = "DESC" if descending else "ASC"
        query += (
            f"ORDER BY {column} IS NULL, {column} {direction}, "
            "p.normalized_name LIMIT ?"
        )
        params.append(max(1, limit))

        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_stats(r) for r in rows]

    @staticmethod
    def _row_to_stats(row: tuple[object, ...]) -> ProductStats:
        count = int(str(row[5]))
        avg = float(str(row[6]))
        msrp = float(str(row[4])) if row[4] is not None else None

        stddev: Decimal | None = None
        if count >= 2 and row[9] is not None:
            variance = (float(str(row[9])) - count * avg * avg) / (count - 1)
            stddev = _money(math.sqrt(max(0.0, variance)))

        margin_percent = (
            _money(float(str(row[10]))) if row[10] is not None else None
        )
        return ProductStats(
            product_id=str(row[0]),
            normalized_name=str(row[1]),
            category=ProductCategory(str(row[2])),
            set_name=str(row[3]) if row[3] is not None else None,
            msrp_eur=_money(msrp),
            sales_count_30d=count,
            avg_price=_money(avg) or Decimal(0),
            min_price=_money(float(str(row[7]))) or Decimal(0),
            max_price=_money(float(str(row[8]))) or Decimal(0),
            price_stddev=stddev,
            margin_eur=_money(avg - msrp) if msrp else None,
            margin_percent=margin_percent,
            last_sale_at=_parse_ts(str(row[11]) if row[11] else None),
        )
