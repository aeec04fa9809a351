"""
Configuration Management for Finance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every external price source, the bulk NAV table and the optional
Google Sheets backend are declared in one place, with defaults that
match the providers' documented rate limits.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class YahooFinanceSettings(BaseSettings):
    """Primary price provider (Yahoo Finance chart endpoint)."""

    model_config = SettingsConfigDict(
        env_prefix="YAHOO_",
        extra="ignore"
    )

    base_url: str = Field(
        default="https://query1.finance.yahoo.com",
        description="Yahoo Finance API host"
    )
    timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Per-request timeout"
    )
    min_interval_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Minimum spacing between two calls to Yahoo Finance"
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per symbol before giving up"
    )
    initial_backoff_seconds: float = Field(
        default=3.0,
        ge=0,
        description="First retry delay; doubles on every retry"
    )
    default_exchange_suffix: str = Field(
        default=".NS",
        description="Suffix appended to symbols that carry no exchange suffix"
    )
    user_agent: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64)",
        description="User-Agent header (Yahoo rejects bare clients)"
    )


class TwelveDataSettings(BaseSettings):
    """Secondary price provider (Twelve Data quote endpoint)."""

    model_config = SettingsConfigDict(
        env_prefix="TWELVEDATA_",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Twelve Data API key; the provider is skipped without it"
    )
    base_url: str = Field(
        default="https://api.twelvedata.com",
        description="Twelve Data API host"
    )
    timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Per-request timeout"
    )
    min_interval_seconds: float = Field(
        default=8.0,
        ge=0,
        description="Minimum spacing between two calls to Twelve Data"
    )

    @field_validator('api_key')
    @classmethod
    def blank_key_is_missing(cls, v: Optional[str]) -> Optional[str]:
        """An empty TWELVEDATA_API_KEY means no key."""
        if v is not None and not v.strip():
            return None
        return v


class AmfiSettings(BaseSettings):
    """Bulk NAV table published by AMFI."""

    model_config = SettingsConfigDict(
        env_prefix="AMFI_",
        extra="ignore"
    )

    nav_url: str = Field(
        default="https://www.amfiindia.com/spages/NAVAll.txt",
        description="Semicolon-delimited NAV table for all schemes"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="AMFI can be slow; longer timeout than the quote APIs"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    investments_sheet_name: str = Field(default="Investments")
    loans_sheet_name: str = Field(default="Loans")
    plans_sheet_name: str = Field(default="Sips")
    expenses_sheet_name: str = Field(default="Expenses")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Root log level"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (console rendering otherwise)"
    )

    # Network
    connect_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="TCP connect timeout shared by all outbound calls"
    )

    # Refresh runs
    refresh_deadline_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Abort a refresh run after this many seconds (no limit when unset)"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so the Sheets backend stays optional

    @property
    def yahoo(self) -> YahooFinanceSettings:
        return YahooFinanceSettings()

    @property
    def twelve_data(self) -> TwelveDataSettings:
        return TwelveDataSettings()

    @property
    def amfi(self) -> AmfiSettings:
        return AmfiSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for every section that failed to load.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("yahoo", "twelve_data", "amfi", "google_sheets", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    # The secondary provider loads fine without a key, but is unusable
    if results.get("twelve_data") and settings.twelve_data.api_key is None:
        results["twelve_data_api_key"] = False

    return results
