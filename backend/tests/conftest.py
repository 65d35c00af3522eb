"""
Shared fixtures for the TickBot test suite.
"""

import pytest

from config.settings import Settings, reset_settings
from fakes import RecordingSink


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point app data at a temp dir and drop cached settings around each test."""
    monkeypatch.setenv("TICKBOT_APP_DATA_DIR", str(tmp_path / "app-data"))
    monkeypatch.delenv("TICKBOT_API_KEY", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings(tmp_path):
    """Test settings with a short feed timeout and a wide tick interval range."""
    return Settings(
        _env_file=None,
        log_directory=str(tmp_path / "logs"),
        feed_connect_timeout_seconds=0.5,
        max_tick_interval_seconds=3600,
    )


@pytest.fixture
def sink():
    return RecordingSink()
