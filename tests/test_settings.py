"""
Tests for environment-driven configuration.
"""

import pytest
from pydantic import ValidationError

from finance_tracker.config import (
    AmfiSettings,
    AppSettings,
    TwelveDataSettings,
    YahooFinanceSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def clean_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestProviderSettings:
    """Tests for the price and NAV source sections."""

    def test_yahoo_defaults(self, monkeypatch):
        """Test the documented Yahoo limits."""
        monkeypatch.delenv("YAHOO_MIN_INTERVAL_SECONDS", raising=False)
        settings = YahooFinanceSettings()
        assert settings.min_interval_seconds == 10.0
        assert settings.max_attempts == 3
        assert settings.initial_backoff_seconds == 3.0
        assert settings.default_exchange_suffix == ".NS"

    def test_yahoo_from_environment(self, monkeypatch):
        """Test that YAHOO_ variables override the defaults."""
        monkeypatch.setenv("YAHOO_MAX_ATTEMPTS", "5")
        assert YahooFinanceSettings().max_attempts == 5

    def test_yahoo_rejects_zero_attempts(self, monkeypatch):
        """Test that at least one attempt is required."""
        monkeypatch.setenv("YAHOO_MAX_ATTEMPTS", "0")
        with pytest.raises(ValidationError):
            YahooFinanceSettings()

    def test_twelve_data_key_from_environment(self, monkeypatch):
        """Test that the API key is read from TWELVEDATA_API_KEY."""
        monkeypatch.setenv("TWELVEDATA_API_KEY", "demo-key")
        assert TwelveDataSettings().api_key == "demo-key"

    def test_blank_twelve_data_key_is_missing(self, monkeypatch):
        """Test that a whitespace-only key counts as not configured."""
        monkeypatch.setenv("TWELVEDATA_API_KEY", "   ")
        assert TwelveDataSettings().api_key is None

    def test_amfi_default_url(self):
        """Test the bulk NAV table location."""
        assert AmfiSettings().nav_url.endswith("NAVAll.txt")


class TestAppSettings:
    """Tests for application-wide settings."""

    def test_rejects_unknown_log_level(self, monkeypatch):
        """Test that the log level is validated."""
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        with pytest.raises(ValidationError):
            AppSettings()

    def test_deadline_is_optional(self, monkeypatch):
        """Test that runs have no deadline unless one is configured."""
        monkeypatch.delenv("REFRESH_DEADLINE_SECONDS", raising=False)
        assert AppSettings().refresh_deadline_seconds is None


class TestValidateAllSettings:
    """Tests for the startup check."""

    def test_reports_missing_sheets_and_key(self, monkeypatch):
        """Test that an unconfigured backend and a missing key are reported."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        monkeypatch.delenv("TWELVEDATA_API_KEY", raising=False)

        results = validate_all_settings()

        assert results["yahoo"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
        assert results["twelve_data_api_key"] is False
