"""
Configuration Management for SplitLedger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Split tolerance, the demo account and the storage backend are all read
from one place, so the ledger, the validator and the UI agree on them.
"""

from functools import lru_cache
from pathlib import Path
from decimal import Decimal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


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
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for shared transactions"
    )
    groups_sheet_name: str = Field(
        default="Groups",
        description="Name of the sheet for groups"
    )
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


class SpeechSettings(BaseSettings):
    """Speech transcription polling configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPEECH_",
        extra="ignore"
    )

    max_poll_attempts: int = Field(
        default=60,
        ge=1,
        description="How many times to poll a transcription job before giving up"
    )
    poll_interval_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay between transcription status polls"
    )


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

    # Money
    default_currency: str = Field(
        default="USD",
        description="Currency preselected for new transactions"
    )
    supported_currencies: str = Field(
        default="USD,EUR,GBP,INR",
        description="Comma-separated list of supported currency codes"
    )
    split_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Allowed difference when reconciling percentage or exact splits"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future a transaction date can be before we warn"
    )
    recent_transactions_count: int = Field(
        default=5,
        ge=1,
        description="Number of transactions shown in the recent list"
    )

    # Session
    session_store_path: str = Field(
        default=".splitledger/session.json",
        description="File used to persist the mocked session and theme"
    )
    default_theme: str = Field(
        default="system",
        pattern="^(light|dark|system)$",
        description="Theme used before the user picks one"
    )
    demo_user_id: str = Field(
        default="demo-user-123",
        description="UID of the demo account used for auto-login"
    )
    demo_user_email: str = Field(
        default="demo@example.com",
        description="Email of the demo account"
    )
    demo_user_name: str = Field(
        default="Demo User",
        description="Display name of the demo account"
    )

    @property
    def supported_currencies_list(self) -> list[str]:
        """Get supported currencies as a list."""
        return [code.strip().upper() for code in self.supported_currencies.split(",") if code.strip()]


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def speech(self) -> SpeechSettings:
        return SpeechSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for every section that failed to load.
    """
    results = {}
    settings = get_settings()

    sections = {
        "google_sheets": lambda: settings.google_sheets,
        "speech": lambda: settings.speech,
        "app": lambda: settings.app,
    }
    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
