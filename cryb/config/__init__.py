"""Configuration package."""

from cryb.config.settings import (
    AppSettings,
    BackendKind,
    GoogleSheetsSettings,
    RestBackendSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BackendKind",
    "GoogleSheetsSettings",
    "RestBackendSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
