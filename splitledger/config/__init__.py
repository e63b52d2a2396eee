"""Configuration package."""

from splitledger.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    SpeechSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "Settings",
    "SpeechSettings",
    "get_settings",
    "validate_all_settings",
]
