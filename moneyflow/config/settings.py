"""
Configuration Management for Moneyflow

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The reconciliation engine reads its thresholds from these settings
unless a caller passes an explicit settings object.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReconciliationSettings(BaseSettings):
    """Debt reconciliation engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONEYFLOW_RECON_",
        extra="ignore"
    )

    epsilon: Decimal = Field(
        default=Decimal("0.01"),
        gt=0,
        le=1,
        description="Balances below this are treated as zero"
    )
    summary_limit: int = Field(
        default=5,
        ge=1,
        description="How many period summaries to return for display"
    )
    unknown_period_key: str = Field(
        default="unknown",
        min_length=1,
        description="Period key for entries with neither tag nor date"
    )
    unknown_period_label: str = Field(
        default="Debt",
        min_length=1,
        description="Display label for the unknown period"
    )
    percent_threshold: Decimal = Field(
        default=Decimal("1"),
        ge=0,
        description="Rates strictly above this are read as percentages"
    )

    @field_validator('unknown_period_key')
    @classmethod
    def strip_unknown_key(cls, v: str) -> str:
        """Period keys are compared after stripping, so store them stripped."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("unknown_period_key cannot be blank")
        return stripped


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

    @property
    def reconciliation(self) -> ReconciliationSettings:
        return ReconciliationSettings()

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

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.reconciliation
        results["reconciliation"] = True
    except Exception as e:
        results["reconciliation"] = False
        results["reconciliation_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
