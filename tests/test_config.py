"""Tests for environment configuration."""
from pathlib import Path

import pytest

from builder_scout.config import ConfigurationError, ScanSettings

SCOUT_VARS = (
    "GITHUB_TOKEN", "SCOUT_DATA_PATH", "SCOUT_EXPORT_DIR", "SCOUT_BATCH_SIZE",
    "SCOUT_RATE_LIMIT_BUFFER", "SCOUT_MAX_USERS_PER_HOUR", "SCOUT_SNAPSHOT_EVERY",
    "SCOUT_MAX_CYCLES", "SCOUT_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in SCOUT_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    """Test settings with only a token set."""
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")

    settings = ScanSettings.from_env()

    assert settings.github_token == "ghp_test"
    assert settings.data_path == Path("data/store.json")
    assert settings.export_dir == Path("public/data")
    assert settings.batch_size == 15
    assert settings.max_cycles is None
    assert settings.log_level == "INFO"


def test_overrides(monkeypatch):
    """Test reading every supported variable."""
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
    monkeypatch.setenv("SCOUT_DATA_PATH", "/tmp/scout.json")
    monkeypatch.setenv("SCOUT_BATCH_SIZE", "5")
    monkeypatch.setenv("SCOUT_SNAPSHOT_EVERY", "0")
    monkeypatch.setenv("SCOUT_MAX_CYCLES", "3")
    monkeypatch.setenv("SCOUT_LOG_LEVEL", "debug")

    settings = ScanSettings.from_env()

    assert settings.data_path == Path("/tmp/scout.json")
    assert settings.batch_size == 5
    assert settings.snapshot_every == 1
    assert settings.max_cycles == 3
    assert settings.log_level == "DEBUG"


def test_missing_token():
    """Test that scanning refuses to start without a token."""
    with pytest.raises(ConfigurationError):
        ScanSettings.from_env()

    assert ScanSettings.from_env(require_token=False).github_token == ""


def test_malformed_number(monkeypatch):
    """Test a non-numeric value for a numeric variable."""
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
    monkeypatch.setenv("SCOUT_BATCH_SIZE", "lots")

    with pytest.raises(ConfigurationError):
        ScanSettings.from_env()
