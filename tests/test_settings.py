"""Tests for configuration settings."""

from pathlib import Path

from hotel_ledger.config.settings import LedgerSettings, get_settings


def test_settings_loads_from_env():
    """Test that settings loads from environment variables."""
    settings = get_settings()

    assert settings.remote_store_url == "http://localhost:54321"
    assert settings.remote_store_key.get_secret_value() == "test-anon-key"
    assert settings.timezone == "UTC"


def test_settings_has_defaults():
    """Test that settings has sensible defaults."""
    settings = get_settings()

    assert settings.remote_store_timeout == 10.0
    assert settings.remote_store_max_retries == 2
    assert settings.storage_key == "hotel_pro_data"
    assert settings.dashboard_window_months == 6


def test_settings_are_cached():
    """Test that get_settings returns cached instance."""
    settings1 = get_settings()
    settings2 = get_settings()

    assert settings1 is settings2


def test_snapshot_path_joins_dir_and_key(tmp_path):
    """Test that the snapshot file is named after the storage key."""
    settings = LedgerSettings(LEDGER_DATA_DIR=str(tmp_path), LEDGER_STORAGE_KEY="hotel")

    assert settings.snapshot_path == Path(tmp_path) / "hotel.json"


def test_auth_url_falls_back_to_remote_store():
    """Test that an empty AUTH_URL means the remote store host."""
    settings = LedgerSettings(REMOTE_STORE_URL="https://db.example.com/", AUTH_URL="")

    assert settings.resolved_auth_url == "https://db.example.com"

    settings = LedgerSettings(AUTH_URL="https://auth.example.com")
    assert settings.resolved_auth_url == "https://auth.example.com"
