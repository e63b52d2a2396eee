"""Mocked session and user preferences."""

from splitledger.session.context import (
    AppContext,
    AuthenticationError,
    SessionManager,
    Theme,
    ThemePreference,
)

__all__ = [
    "AppContext",
    "AuthenticationError",
    "SessionManager",
    "Theme",
    "ThemePreference",
]
