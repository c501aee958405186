# pokeprofit/config/logging_config.py

"""Per-run timestamped logging configuration for pokeprofit.

Each process launch creates a dedicated log file inside ``logs/``,
named with the launch timestamp (e.g. ``logs/run_20260214_153045.log``).
All ``pokeprofit.*`` loggers route through this file handler so that
the scraper, parser and analyzer output lands in the same per-run log.

The console handler honours ``Settings.LOG_LEVEL`` so long analyses can
be watched live with ``LOG_LEVEL=INFO`` and kept quiet otherwise.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from pokeprofit.config.settings import Settings

# Reusable format strings --------------------------------------------------

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(funcName)s:%(lineno)d | "
    "%(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _console_level(name: str) -> int:
    """Map a level name to a logging constant, defaulting to WARNING."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.WARNING


def setup_logging(
    logs_dir: Path | None = None,
    console_level: str | None = None,
) -> Path:
    """Initialise the root ``pokeprofit`` logger for the current run.

    Returns:
        The :class:`~pathlib.Path` to the log file created for this run.
    """
    directory: Path = logs_dir or Settings.LOGS_DIR
    directory.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = directory / f"run_{timestamp}.log"

    # --- Root project logger -----------------------------------------------
    root_logger = logging.getLogger("pokeprofit")
    root_logger.setLevel(logging.DEBUG)

    # Prevent duplicate handlers on repeated calls (e.g. tests)
    if root_logger.handlers:
        return log_file

    # --- File handler (DEBUG+) – captures everything -----------------------
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    # --- Console handler – level from settings -----------------------------
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(
        _console_level(console_level or Settings.LOG_LEVEL)
    )
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    root_logger.info(
        "Logging initialised, log file: %s", log_file
    )

    return log_file
