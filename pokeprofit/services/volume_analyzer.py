# pokeprofit/services/volume_analyzer.py

"""Orchestrates one analysis run: scrape, normalize, persist."""

import asyncio
import dataclasses
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from pokeprofit.config.settings import Settings
from pokeprofit.errors import (
    AnalysisAlreadyRunningError,
    AnalysisFailedError,
    AnalysisTimeoutError,
    InvalidInputError,
    ProductNotFoundError,
    ScrapeTimeoutError,
    StoreError,
)
from pokeprofit.filters.product_normalizer import ProductNormalizer
from pokeprofit.models.analysis import (
    AnalysisProgress,
    AnalysisResult,
    AnalysisRun,
    AnalysisStatus,
    Phase,
)
from pokeprofit.models.product import NormalizedProduct, Product
from pokeprofit.models.sale import RawSale, Sale
from pokeprofit.scrapers.ebay_scraper import EbayScraper, ScrapeOptions
from pokeprofit.storage.base import ProductStore, RunStore, SaleStore

logger = logging.getLogger("pokeprofit.analyzer")

ProgressCallback = Callable[[AnalysisProgress], None]


@dataclass
class AnalyzeOptions:
    """Parameters of one analysis run.

    ``timeout`` bounds the scraping phase in seconds.  ``on_progress``
    is called synchronously from the run itself and must return quickly.
    """

    query: str
    category: str = ""
    max_pages: int = 10
    on_progress: ProgressCallback | None = None
    timeout: float | None = None


class VolumeAnalyzer:
    """Single-flight analysis orchestrator.

    Only one run may be active per analyzer; a second ``run`` call fails
    fast with :class:`AnalysisAlreadyRunningError`.  The current status
    slot is the only state shared with pollers and sits behind a lock.
    """

    def __init__(
        self,
        scraper: EbayScraper,
        product_store: ProductStore,
        sale_store: SaleStore,
        run_store: RunStore,
        normalizer: ProductNormalizer | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.scraper = scraper
        self.product_store = product_store
        self.sale_store = sale_store
        self.run_store = run_store
        self.normalizer = normalizer or ProductNormalizer()
        self.settings = settings or Settings()
        self._status_lock = threading.Lock()
        self._status: AnalysisStatus | None = None

    # ── Status slot ──────────────────────────────────────

    def _claim(self, run: AnalysisRun) -> None:
        with self._status_lock:
            if self._status is not None and self._status.is_running:
                raise AnalysisAlreadyRunningError()
            self._status = AnalysisStatus(
                is_running=True,
                analysis_id=run.id,
                started_at=run.started_at,
            )

    def _clear_status(self) -> None:
        with self._status_lock:
            self._status = None

    def _update_progress(self, progress: AnalysisProgress) -> None:
        with self._status_lock:
            if self._status is not None:
                self._status.progress = progress

    def is_running(self) -> bool:
        with self._status_lock:
            return self._status is not None and self._status.is_running

    async def get_status(self) -> AnalysisStatus:
        """Live status, or the store's running record when idle here."""
        with self._status_lock:
            if self._status is not None:
                return dataclasses.replace(self._status)

        running = await asyncio.to_thread(self.run_store.get_running)
        if running is None:
            return AnalysisStatus(is_running=False)
        return AnalysisStatus(
            is_running=True,
            analysis_id=running.id,
            started_at=running.started_at,
        )

    def _report(
        self,
        callback: ProgressCallback | None,
        progress: AnalysisProgress,
    ) -> None:
        """Publish progress; a failing callback is logged, never retried."""
        self._update_progress(progress)
        if callback is None:
            return
        try:
            callback(progress)
        except Exception:
            logger.warning(
                "Progress callback failed (phase=%s)",
                progress.phase.value,
                exc_info=True,
            )

    # ── Run lifecycle ────────────────────────────────────

    async def run(self, options: AnalyzeOptions) -> AnalysisResult:
        """Execute one full analysis run.

        Raises:
            InvalidInputError: empty query.
            AnalysisAlreadyRunningError: another run is in progress.
            AnalysisTimeoutError: the scraping deadline elapsed.
            AnalysisFailedError: scraping or processing failed.
            asyncio.CancelledError: the calling task was cancelled.
        """
        query = options.query.strip()
        if not query:
            raise InvalidInputError("query is required")

        run = AnalysisRun(search_query=query)
        self._claim(run)
        try:
            return await self._execute(run, query, options)
        finally:
            self._clear_status()

    async def _execute(
        self,
        run: AnalysisRun,
        query: str,
        options: AnalyzeOptions,
    ) -> AnalysisResult:
        started = time.monotonic()
        callback = options.on_progress
        await asyncio.to_thread(self.run_store.create_run, run)
        logger.info("Analysis %s started for '%s'", run.id, query)

        self._report(callback, AnalysisProgress(
            phase=Phase.SCRAPING,
            message="Starting eBay scrape...",
            percent_complete=0.1,
        ))

        # Phase 1: scrape
        max_pages = (
            options.max_pages
            if options.max_pages > 0
            else self.settings.MAX_PAGES
        )
        scrape_options = ScrapeOptions(
            query=query,
            category=options.category,
            max_pages=max_pages,
            since=datetime.now() - timedelta(
                days=self.settings.LOOKBACK_DAYS
            ),
            timeout=options.timeout,
        )
        try:
            scrape = await self.scraper.scrape(scrape_options)
        except ScrapeTimeoutError as exc:
            await self._fail(run, callback, exc)
            raise AnalysisTimeoutError(run.id, "scraping", str(exc)) from exc
        except asyncio.CancelledError:
            await self._fail(run, callback, "cancelled during scraping")
            raise
        except Exception as exc:
            await self._fail(run, callback, exc)
            raise AnalysisFailedError(run.id, "scraping", str(exc)) from exc

        self._report(callback, AnalysisProgress(
            phase=Phase.SCRAPING,
            pages_scraped=scrape.pages_scraped,
            sales_found=scrape.sale_count,
            message=(
                f"Scraped {scrape.pages_scraped} pages, "
                f"found {scrape.sale_count} sales"
            ),
            percent_complete=0.3,
        ))

        if scrape.sale_count == 0:
            return await self._complete(
                run, callback, started, 0, 0,
                scrape.pages_scraped, len(scrape.errors),
            )

        # Phase 2: normalize and persist
        self._report(callback, AnalysisProgress(
            phase=Phase.NORMALIZING,
            pages_scraped=scrape.pages_scraped,
            sales_found=scrape.sale_count,
            message="Normalizing product names...",
            percent_complete=0.4,
        ))
        try:
            products_count, sales_count = await self._process_sales(
                run.id, scrape.sales, callback,
            )
        except asyncio.CancelledError:
            await self._fail(run, callback, "cancelled during processing")
            raise
        except Exception as exc:
            await self._fail(run, callback, exc)
            raise AnalysisFailedError(
                run.id, "processing sales", str(exc),
            ) from exc

        # Phase 3: complete
        return await self._complete(
            run, callback, started, products_count, sales_count,
            scrape.pages_scraped, len(scrape.errors),
        )

    async def _complete(
        self,
        run: AnalysisRun,
        callback: ProgressCallback | None,
        started: float,
        products_count: int,
        sales_count: int,
        pages_scraped: int,
        scrape_errors: int,
    ) -> AnalysisResult:
        run.complete(products_count, sales_count)
        try:
            await asyncio.to_thread(self.run_store.update_run, run)
        except Exception:
            logger.error(
                "Failed to update analysis %s", run.id, exc_info=True,
            )

        duration = timedelta(seconds=time.monotonic() - started)
        logger.info(
            "Analysis %s completed: %d products, %d sales in %.1fs",
            run.id,
            products_count,
            sales_count,
            duration.total_seconds(),
        )
        self._report(callback, AnalysisProgress(
            phase=Phase.COMPLETE,
            pages_scraped=pages_scraped,
            sales_found=sales_count,
            products_matched=products_count,
            message=(
                f"Analysis complete: {products_count} products, "
                f"{sales_count} sales"
            ),
            percent_complete=1.0,
        ))
        return AnalysisResult(
            analysis_id=run.id,
            products_count=products_count,
            sales_count=sales_count,
            duration=duration,
            pages_scraped=pages_scraped,
            scrape_errors=scrape_errors,
        )

    async def _fail(
        self,
        run: AnalysisRun,
        callback: ProgressCallback | None,
        error: BaseException | str,
    ) -> None:
        run.fail(error)
        try:
            await asyncio.to_thread(self.run_store.update_run, run)
        except Exception:
            logger.error(
                "Failed to update failed analysis %s",
                run.id,
                exc_info=True,
            )
        logger.error("Analysis %s failed: %s", run.id, error)
        self._report(callback, AnalysisProgress(
            phase=Phase.FAILED,
            message=str(error),
        ))

    # ── Phase 2 ──────────────────────────────────────────

    async def _resolve_product(
        self, normalized: NormalizedProduct,
    ) -> Product | None:
        """Look up the canonical product, creating it when missing."""
        name = normalized.normalized_name
        try:
            return await asyncio.to_thread(
                self.product_store.find_by_canonical_name, name,
            )
        except ProductNotFoundError:
            pass

        try:
            return await asyncio.to_thread(
                self.product_store.create_or_find,
                Product.from_normalized(normalized),
            )
        except StoreError as exc:
            logger.warning("Failed to create product '%s': %s", name, exc)
            return None

    async def _process_sales(
        self,
        analysis_id: str,
        raw_sales: list[RawSale],
        callback: ProgressCallback | None,
    ) -> tuple[int, int]:
        """Attach recognized sales to products and bulk-insert them.

        Returns (distinct products matched, sales recorded).
        """
        products: dict[str, Product] = {}
        pending: list[Sale] = []
        total = len(raw_sales)
        every = max(1, self.settings.PROGRESS_EVERY)

        for i, raw in enumerate(raw_sales):
            await asyncio.sleep(0)

            if i % every == 0:
                self._report(callback, AnalysisProgress(
                    phase=Phase.SAVING,
                    sales_found=total,
                    products_matched=len(products),
                    message=f"Processing sale {i + 1}/{total}",
                    percent_complete=0.4 + (i / total) * 0.5,
                ))

            normalized, confidence = self.normalizer.normalize(raw.title)
            name = normalized.normalized_name
            if confidence < self.settings.MIN_CONFIDENCE or not name:
                logger.debug(
                    "Skipped '%s' (confidence %.2f)", raw.title, confidence,
                )
                continue

            product = products.get(name)
            if product is None:
                product = await self._resolve_product(normalized)
                if product is None:
                    continue
                products[name] = product

            pending.append(Sale(
                product_id=product.id,
                title=raw.title,
                price=raw.price,
                sold_at=raw.sold_at,
                url=raw.url or None,
                analysis_id=analysis_id,
                platform=raw.platform,
                currency=raw.currency,
            ))

        if pending:
            inserted = await asyncio.to_thread(
                self.sale_store.bulk_insert, pending,
            )
            logger.debug(
                "Sales inserted: %d of %d attempted", inserted, len(pending),
            )
        return len(products), len(pending)
