"""Configuration package."""

from echopay.config.settings import (
    AppSettings,
    LedgerServiceSettings,
    ProxySettings,
    Settings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "LedgerServiceSettings",
    "ProxySettings",
    "Settings",
    "SyncSettings",
    "get_settings",
    "validate_all_settings",
]
