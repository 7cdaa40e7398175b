"""
Configuration Management for Cryb

Settings are read from environment variables (and .env) with pydantic-settings.

All configuration is centralized here so it is easy to see which backend
the app talks to and so required values are validated at startup.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BackendKind(str, Enum):
    """Which storage/auth backend the app is wired to."""
    MEMORY = "memory"
    REST = "rest"
    GOOGLE_SHEETS = "google_sheets"


class RestBackendSettings(BaseSettings):
    """Hosted Postgres-with-REST backend (PostgREST + GoTrue) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CRYB_REST_",
        extra="ignore"
    )

    url: str = Field(
        ...,
        description="Project base URL, e.g. https://xyz.supabase.co"
    )
    api_key: str = Field(
        ...,
        description="Public (anon) API key sent with every request"
    )
    schema_name: str = Field(
        default="public",
        description="Database schema exposed over REST"
    )

    @field_validator('url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class GoogleSheetsSettings(BaseSettings):
    """Spreadsheet used as the table store when backend=google_sheets."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file (JSON)"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Key of the spreadsheet holding one worksheet per table"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Only warn: the key file may be mounted after the settings load."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "The Google Sheets backend will fail to connect without it."
            )
        return v


class AppSettings(BaseSettings):
    """
    Household app settings.

    No env prefix; values come from the environment or .env.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Deployment name (development, staging, production)"
    )
    debug_mode: bool = Field(
        default=False,
        description="Verbose behaviour for local work"
    )
    backend: BackendKind = Field(
        default=BackendKind.MEMORY,
        description="Storage backend to use"
    )

    # Houses
    invite_code_length: int = Field(
        default=6,
        ge=4,
        le=12,
        description="Length of generated invite codes"
    )
    invite_code_max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="How many fresh invite codes to try when one collides"
    )

    # Expenses
    recent_expenses_limit: int = Field(
        default=5,
        ge=1,
        description="How many expenses the 'recent' view exposes"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (False = console renderer)"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return v


class Settings(BaseSettings):
    """
    Root settings container.

    Entry point for every settings group.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so a memory-backed app
    # doesn't need REST or Sheets credentials.

    @property
    def rest(self) -> RestBackendSettings:
        return RestBackendSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings, built once.

    Tests call get_settings.cache_clear() after changing the environment.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate the settings the configured backend needs.

    Returns a dict of {setting_name: is_valid} plus
    `<name>_error` entries for the ones that failed.
    """
    results = {}

    settings = get_settings()

    try:
        app = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)
        return results

    if app.backend == BackendKind.REST:
        try:
            _ = settings.rest
            results["rest"] = True
        except Exception as e:
            results["rest"] = False
            results["rest_error"] = str(e)

    if app.backend == BackendKind.GOOGLE_SHEETS:
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
