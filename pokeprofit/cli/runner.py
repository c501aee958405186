# pokeprofit/cli/runner.py

"""Headless CLI runner: analysis, stats, health and cleanup commands."""

import logging
from pathlib import Path

from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from pokeprofit.config.settings import Settings
from pokeprofit.errors import (
    AnalysisAlreadyRunningError,
    AnalysisFailedError,
    InvalidInputError,
)
from pokeprofit.models.analysis import AnalysisProgress
from pokeprofit.models.product import ProductCategory
from pokeprofit.models.stats import ProductStats
from pokeprofit.scrapers.ebay_scraper import EbayScraper
from pokeprofit.services.profit import (
    ProfitCalculator,
    format_margin_eur,
    profitability_level_for_stats,
)
from pokeprofit.services.volume_analyzer import AnalyzeOptions, VolumeAnalyzer
from pokeprofit.storage.analysis_db import AnalysisDB, StatsSort

logger = logging.getLogger("pokeprofit.cli")

# Stderr console for status messages so stdout stays clean for tables
_err = Console(stderr=True)

TOP_PRODUCTS_LIMIT = 10


def resolve_category(category: str | None) -> str:
    """Validate a crawl category token against the allow-list.

    Raises ``SystemExit`` on unknown tokens.
    """
    if not category:
        return ""
    token = category.strip().lower()
    if token not in Settings.CATEGORY_IDS:
        valid = ", ".join(sorted(Settings.CATEGORY_IDS))
        _err.print(f"[red]Unknown category: {category}[/red]")
        _err.print(f"[dim]Available: {valid}[/dim]")
        raise SystemExit(1)
    return token


def _print_stats_table(stats: list[ProductStats], title: str) -> None:
    """Render a Rich table of product stats to stdout."""
    calculator = ProfitCalculator()
    table = Table(
        title=title,
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Product", max_width=50)
    table.add_column("Category", style="magenta")
    table.add_column("Sales 30d", justify="right")
    table.add_column("Avg price", justify="right", style="green")
    table.add_column("MSRP", justify="right")
    table.add_column("Margin", justify="right")
    table.add_column("Net", justify="right")

    for idx, s in enumerate(stats, 1):
        level = profitability_level_for_stats(s)
        net = (
            format_margin_eur(calculator.calculate_for_stats(s).net_margin_eur)
            if s.has_msrp
            else "N/A"
        )
        table.add_row(
            str(idx),
            s.normalized_name,
            s.category.display_name,
            str(s.sales_count_30d),
            s.format_avg_price(),
            s.format_msrp(),
            f"[{level.style}]{s.format_margin_percent()}[/{level.style}]",
            net,
        )

    Console().print(table)


async def cli_analyze(
    query: str,
    category: str | None,
    max_pages: int,
    timeout: float | None,
    db_path: Path | None = None,
) -> int:
    """Run one analysis and print the top products (0=ok, 1=fail)."""
    token = resolve_category(category)
    db = AnalysisDB(db_path)
    try:
        analyzer = VolumeAnalyzer(
            scraper=EbayScraper(),
            product_store=db,
            sale_store=db,
            run_store=db,
        )
        _err.print(
            f"[bold]Analyzing:[/bold] {query}  "
            f"[dim]category={token or 'all'} max_pages={max_pages}[/dim]"
        )

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            console=_err,
        ) as progress:
            task = progress.add_task("Starting...", total=100)

            def on_progress(update: AnalysisProgress) -> None:
                progress.update(
                    task,
                    completed=update.percent_complete * 100,
                    description=update.message or update.phase.value,
                )

            try:
                result = await analyzer.run(AnalyzeOptions(
                    query=query,
                    category=token,
                    max_pages=max_pages,
                    on_progress=on_progress,
                    timeout=timeout,
                ))
            except (
                InvalidInputError,
                AnalysisAlreadyRunningError,
                AnalysisFailedError,
            ) as exc:
                logger.error("Analysis failed: %s", exc)
                _err.print(f"[red]Error: {exc}[/red]")
                return 1

        errors = (
            f", {result.scrape_errors} page errors"
            if result.scrape_errors
            else ""
        )
        _err.print(
            f"[green]✓ {result.sales_count} sales across "
            f"{result.products_count} products from "
            f"{result.pages_scraped} pages in "
            f"{result.duration.total_seconds():.1f}s{errors}[/green]"
        )
        if not result.sales_count:
            _err.print("[yellow]No sales found.[/yellow]")
            return 0

        stats = db.get_product_stats(limit=TOP_PRODUCTS_LIMIT)
        _print_stats_table(stats, "Top products by volume")
        return 0
    finally:
        db.close()


def run_stats(
    sort: str,
    category: str | None,
    limit: int = TOP_PRODUCTS_LIMIT,
    db_path: Path | None = None,
) -> int:
    """Print stored product stats."""
    if category and not ProductCategory.is_valid(category):
        valid = ", ".join(c.value for c in ProductCategory)
        _err.print(f"[red]Unknown category: {category}[/red]")
        _err.print(f"[dim]Available: {valid}[/dim]")
        return 1

    db = AnalysisDB(db_path)
    try:
        stats = db.get_product_stats(
            category=category or None,
            sort_by=StatsSort(sort),
            limit=limit,
        )
    finally:
        db.close()

    if not stats:
        _err.print("[yellow]No sales recorded in the last 30 days.[/yellow]")
        return 0
    _print_stats_table(stats, f"Products by {sort}")
    return 0


def run_cleanup_stale(db_path: Path | None = None) -> int:
    """Mark runs left ``running`` by a crashed process as failed."""
    db = AnalysisDB(db_path)
    try:
        count = db.mark_stale_running(Settings.STALE_RUN_MINUTES)
    finally:
        db.close()
    _err.print(f"[green]✓ Marked {count} stale runs as failed[/green]")
    return 0


async def run_health_check() -> int:
    """Run the marketplace connectivity health check."""
    from pokeprofit.services.health_checker import HealthChecker

    _err.print("[bold]Running marketplace health check...[/bold]")
    checker = HealthChecker()
    r = await checker.check()

    table = Table(
        title="Marketplace Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Platform", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    if r.status == "ok":
        status = "[green]✅ OK[/green]"
    elif r.status == "slow":
        status = "[yellow]⚠️  SLOW[/yellow]"
    else:
        status = "[red]❌ DOWN[/red]"

    latency = f"{r.latency_ms:.0f}ms" if r.latency_ms > 0 else "-"
    table.add_row(r.platform, status, latency, r.message)

    Console().print(table)
    return 0 if r.healthy else 1
