"""Configuration package."""

from finance_tracker.config.settings import (
    AmfiSettings,
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    TwelveDataSettings,
    YahooFinanceSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AmfiSettings",
    "AppSettings",
    "GoogleSheetsSettings",
    "Settings",
    "TwelveDataSettings",
    "YahooFinanceSettings",
    "get_settings",
    "validate_all_settings",
]
