# tests/test_health_checker.py

"""Tests for the marketplace health checker service."""

import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from pokeprofit.scrapers.ebay_scraper import EbayScraper
from pokeprofit.services.health_checker import (
    HealthChecker,
    HealthResult,
    probe_target,
)

SESSION_PATH = "pokeprofit.scrapers.ebay_scraper.curl_requests.AsyncSession"


def _mock_session(
    mock_session_cls: MagicMock,
    status_code: int = 200,
    error: Exception | None = None,
) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    session = MagicMock()
    session.get = AsyncMock(return_value=resp, side_effect=error)
    session.close = AsyncMock()
    mock_session_cls.return_value = session
    return session


class TestProbeTarget(unittest.IsolatedAsyncioTestCase):
    """Tests for the single marketplace probe."""

    @patch(SESSION_PATH)
    async def test_ok_status(self, mock_session_cls: MagicMock) -> None:
        """A fast 200 response should return 'ok' status."""
        session = _mock_session(mock_session_cls)

        result = await probe_target(EbayScraper())

        self.assertEqual(result.status, "ok")
        self.assertEqual(result.platform, "ebay")
        self.assertEqual(result.status_code, 200)
        self.assertGreaterEqual(result.latency_ms, 0)
        self.assertTrue(result.healthy)
        url = session.get.call_args.args[0]
        self.assertEqual(url, "https://www.ebay.fr/")
        self.assertIn("User-Agent", session.get.call_args.kwargs["headers"])
        session.close.assert_awaited_once()

    @patch(SESSION_PATH)
    async def test_down_on_http_error(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """A non-200 response should return 'down' status."""
        _mock_session(mock_session_cls, status_code=503)

        result = await probe_target(EbayScraper())

        self.assertEqual(result.status, "down")
        self.assertIn("503", result.message)
        self.assertFalse(result.healthy)

    @patch(SESSION_PATH)
    async def test_down_on_exception(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """A network error should return 'down' status."""
        session = _mock_session(
            mock_session_cls, error=ConnectionError("Connection refused"),
        )

        result = await probe_target(EbayScraper())

        self.assertEqual(result.status, "down")
        self.assertIn("Connection refused", result.message)
        self.assertIsNone(result.status_code)
        session.close.assert_awaited_once()

    @patch(SESSION_PATH)
    async def test_slow_status(self, mock_session_cls: MagicMock) -> None:
        """Latency above the threshold should return 'slow' status."""
        _mock_session(mock_session_cls)
        scraper = EbayScraper()
        scraper.settings.HEALTH_SLOW_MS = -1

        result = await probe_target(scraper)

        self.assertEqual(result.status, "slow")
        self.assertTrue(result.healthy)


class TestHealthChecker(unittest.IsolatedAsyncioTestCase):

    @patch(SESSION_PATH)
    async def test_check_logs_result(
        self, mock_session_cls: MagicMock,
    ) -> None:
        _mock_session(mock_session_cls)

        with self.assertLogs("pokeprofit.health", level="INFO") as logs:
            result = await HealthChecker().check()

        self.assertIsInstance(result, HealthResult)
        self.assertIn("Health check ebay: ok", logs.output[0])
