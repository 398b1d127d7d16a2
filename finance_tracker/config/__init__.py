"""Configuration package."""

from finance_tracker.config.settings import (
    AppSettings,
    GatewaySettings,
    GeminiSettings,
    Settings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GatewaySettings",
    "GeminiSettings",
    "Settings",
    "StoreSettings",
    "get_settings",
    "validate_all_settings",
]
