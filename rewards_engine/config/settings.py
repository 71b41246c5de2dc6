"""
Configuration Management for the Rewards Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Reward tables (spin tiers, thresholds, titles) are NOT configuration;
they live in rewards_engine.rules as fixed constants.
"""

from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets ledger storage configuration."""

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
    rewards_sheet_name: str = Field(default="Rewards")
    spins_sheet_name: str = Field(default="DailySpins")
    streaks_sheet_name: str = Field(default="Streaks")
    goals_sheet_name: str = Field(default="Goals")
    levels_sheet_name: str = Field(default="Levels")
    leases_sheet_name: str = Field(
        default="Leases",
        description="Per-user write leases that serialize commits across processes"
    )
    lease_seconds: int = Field(
        default=30,
        ge=1,
        le=600,
        description="How long an unreleased lease blocks other writers"
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
                "Make sure it exists before running the engine."
            )
        return v


class EngineSettings(BaseSettings):
    """
    Main engine settings.

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

    # Calendar
    timezone: str = Field(
        default="UTC",
        description="IANA timezone used to decide the user's calendar date"
    )

    # Storage
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Ledger store backend"
    )

    # Defaults for read projections
    default_activity_kind: str = Field(
        default="expense_logging",
        min_length=1,
        description="Activity tracked by the dashboard streak"
    )
    spin_history_limit: int = Field(default=30, ge=1, le=365)
    recent_rewards_limit: int = Field(default=20, ge=1, le=200)
    dashboard_rewards_limit: int = Field(default=5, ge=1, le=50)
    recent_achievements_limit: int = Field(default=5, ge=1, le=50)

    # Caller-side retry budget for optimistic concurrency conflicts
    conflict_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times the facade runs an operation that keeps conflicting"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA timezone names at startup."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v


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
    def engine(self) -> EngineSettings:
        return EngineSettings()


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

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the sections that failed.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.engine
        results["engine"] = True
    except Exception as e:
        results["engine"] = False
        results["engine_error"] = str(e)

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    return results
