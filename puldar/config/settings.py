"""
Configuration Management for PULDAR

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The ledger core itself takes plain constructor arguments; these settings
only supply the defaults that create_app_components() wires in.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini model configuration for expense parsing."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=256,
        ge=16,
        le=8192,
        description="Maximum tokens in response (one JSON object)"
    )
    temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per model call before giving up"
    )


class AppSettings(BaseSettings):
    """
    Ledger core settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="PULDAR_",
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

    # Parse cache / rollover bounds
    parse_cache_max_entries: int = Field(
        default=500,
        ge=0,
        description="Maximum memoized extraction results"
    )
    rollover_max_depth: int = Field(
        default=24,
        ge=0,
        le=120,
        description="How many prior months carryover may look back"
    )

    # Validation thresholds
    max_entry_amount: float = Field(
        default=100000.0,
        gt=0,
        description="Largest absolute amount accepted without a warning"
    )
    future_date_tolerance_days: int = Field(
        default=1,
        ge=0,
        description="How many days in the future an entry date can be"
    )

    # Local persistence
    data_dir: str = Field(
        default=".puldar",
        description="Directory for JSON settings, category state and parse cache"
    )

    @field_validator("app_environment")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        return v.strip().lower() or "development"

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()


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

    # Loaded lazily so the core runs without a Gemini key

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

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

    Returns a dict of {setting_name: is_valid} plus
    {setting_name}_error messages for the failures.
    """
    results = {}

    settings = get_settings()

    for name in ("gemini", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            # pydantic's ValidationError subclasses ValueError
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
