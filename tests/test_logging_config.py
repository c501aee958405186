# tests/test_logging_config.py

"""Tests for the per-run logging configuration."""

import logging
import tempfile
import unittest
from pathlib import Path

from pokeprofit.config.logging_config import setup_logging


class TestLoggingConfig(unittest.TestCase):
    """Verify logging setup behaviour."""

    def setUp(self) -> None:
        """Clean up the pokeprofit logger before each test."""
        self._tmpdir = tempfile.TemporaryDirectory()
        self.logs_dir = Path(self._tmpdir.name) / "logs"
        self.root_logger = logging.getLogger("pokeprofit")
        self._clear_handlers()

    def tearDown(self) -> None:
        self._clear_handlers()
        self._tmpdir.cleanup()

    def _clear_handlers(self) -> None:
        for handler in list(self.root_logger.handlers):
            handler.close()
            self.root_logger.removeHandler(handler)

    def test_setup_creates_log_file(self) -> None:
        """setup_logging returns a path that exists on disk."""
        log_path = setup_logging(self.logs_dir)
        self.assertTrue(log_path.exists())

    def test_log_file_naming_convention(self) -> None:
        """Log file name matches run_YYYYMMDD_HHMMSS.log format."""
        log_path = setup_logging(self.logs_dir)
        self.assertRegex(log_path.name, r"^run_\d{8}_\d{6}\.log$")

    def test_log_file_inside_logs_dir(self) -> None:
        log_path = setup_logging(self.logs_dir)
        self.assertEqual(log_path.parent, self.logs_dir)

    def test_file_handler_level_debug(self) -> None:
        """File handler should be set to DEBUG level."""
        setup_logging(self.logs_dir)
        file_handlers = [
            h for h in self.root_logger.handlers
            if isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(len(file_handlers), 1)
        self.assertEqual(file_handlers[0].level, logging.DEBUG)

    def test_console_level_override(self) -> None:
        setup_logging(self.logs_dir, console_level="info")
        stream_handlers = [
            h for h in self.root_logger.handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(len(stream_handlers), 1)
        self.assertEqual(stream_handlers[0].level, logging.INFO)

    def test_unknown_console_level_falls_back_to_warning(self) -> None:
        setup_logging(self.logs_dir, console_level="chatty")
        stream_handlers = [
            h for h in self.root_logger.handlers
            if not isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(stream_handlers[0].level, logging.WARNING)

    def test_repeated_calls_no_duplicate_handlers(self) -> None:
        """Calling setup_logging twice does not duplicate handlers."""
        setup_logging(self.logs_dir)
        count_before = len(self.root_logger.handlers)
        setup_logging(self.logs_dir)
        self.assertEqual(len(self.root_logger.handlers), count_before)

    def test_child_loggers_reach_the_run_file(self) -> None:
        log_path = setup_logging(self.logs_dir)
        logging.getLogger("pokeprofit.scraper.ebay").debug("page 3 parsed")
        for handler in self.root_logger.handlers:
            handler.flush()
        self.assertIn("page 3 parsed", log_path.read_text(encoding="utf-8"))


if __name__ == "__main__":
    unittest.main()
