# tests/conftest.py

"""Shared pytest fixtures for all pokeprofit tests."""

from pathlib import Path

import pytest

from pokeprofit.config.settings import Settings


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep log files and the default database out of the source tree."""
    monkeypatch.setattr(Settings, "LOGS_DIR", tmp_path / "logs")
    monkeypatch.setattr(
        Settings, "ANALYSIS_DB_PATH", tmp_path / "data" / "pokeprofit.db",
    )
