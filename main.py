# main.py

"""Entry point for the pokeprofit sold-listing analyzer."""

import argparse
import asyncio
import logging
import sys

from pokeprofit.config.logging_config import setup_logging
from pokeprofit.config.settings import Settings

logger = logging.getLogger("pokeprofit.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    categories = ", ".join(sorted(Settings.CATEGORY_IDS))

    parser = argparse.ArgumentParser(
        prog="pokeprofit",
        description="eBay.fr sold-listing volume and margin analyzer.",
        epilog=f"Categories: {categories}",
    )
    parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Search query to analyze.",
    )
    parser.add_argument(
        "-c",
        "--category",
        default=None,
        help="Category filter token (default: all).",
    )
    parser.add_argument(
        "-p",
        "--max-pages",
        type=int,
        default=Settings.MAX_PAGES,
        dest="max_pages",
        help=f"Result pages to crawl (default: {Settings.MAX_PAGES}).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Deadline in seconds for the scraping phase.",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        default=False,
        help="Print stored product stats instead of scraping.",
    )
    parser.add_argument(
        "--sort",
        choices=["volume", "margin", "price"],
        default="volume",
        help="Stats ordering (default: volume).",
    )
    parser.add_argument(
        "--health",
        action="store_true",
        default=False,
        help="Run a connectivity health check on the marketplace.",
    )
    parser.add_argument(
        "--cleanup-stale",
        action="store_true",
        default=False,
        dest="cleanup_stale",
        help="Mark analysis runs stuck in 'running' as failed.",
    )
    return parser


def _run_analyze(args: argparse.Namespace) -> None:
    """Run one analysis and exit."""
    from pokeprofit.cli.runner import cli_analyze

    exit_code = asyncio.run(
        cli_analyze(
            query=args.query,
            category=args.category,
            max_pages=args.max_pages,
            timeout=args.timeout,
        )
    )
    sys.exit(exit_code)


def _run_stats(args: argparse.Namespace) -> None:
    """Print stored product stats."""
    from pokeprofit.cli.runner import run_stats

    sys.exit(run_stats(sort=args.sort, category=args.category))


def _run_health_check() -> None:
    """Run marketplace connectivity health check."""
    from pokeprofit.cli.runner import run_health_check

    exit_code = asyncio.run(run_health_check())
    sys.exit(exit_code)


def _run_cleanup_stale() -> None:
    from pokeprofit.cli.runner import run_cleanup_stale

    sys.exit(run_cleanup_stale())


def main() -> None:
    """Route to the requested command."""
    log_file = setup_logging()
    logger.info("pokeprofit starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    if args.health:
        _run_health_check()
    elif args.cleanup_stale:
        _run_cleanup_stale()
    elif args.stats:
        _run_stats(args)
    elif args.query is None:
        parser.print_help()
        sys.exit(1)
    else:
        _run_analyze(args)


if __name__ == "__main__":
    main()
