"""
Configuration Management for the Period Reconciler

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All thresholds the engine applies (classification windows,
rounding tolerance, due-soon lead time) live here rather than as literals in
the calculation modules. Pure functions accept an optional settings object
and fall back to the cached global settings.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when settings are present but unusable."""
    pass


class EngineSettings(BaseSettings):
    """Thresholds used by the matcher, classifier, status and split logic."""

    model_config = SettingsConfigDict(
        env_prefix="RECONCILER_",
        extra="ignore"
    )

    advance_threshold_days: int = Field(
        default=7,
        ge=0,
        description="Payments more than this many days before due are ADVANCE"
    )
    extra_principal_ratio: Decimal = Field(
        default=Decimal("1.10"),
        gt=Decimal("1"),
        description="Paid/expected ratio at which a payment counts as EXTRA_PRINCIPAL"
    )
    due_soon_window_days: int = Field(
        default=3,
        ge=0,
        description="Lead window (days) in which an unpaid occurrence is DUE_SOON"
    )
    amount_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=Decimal("0"),
        description="Tolerance when comparing split sums and totals"
    )
    single_split_adjustment_ratio: Decimal = Field(
        default=Decimal("0.10"),
        ge=Decimal("0"),
        description="A lone split off by more than this fraction is reset to the transaction amount"
    )
    match_tolerance_days: int = Field(
        default=3,
        ge=0,
        description="Window used when looking up the occurrence a payment belongs to"
    )
    debounce_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Skip repeat recomputes of the same key inside this window (0 disables)"
    )
    unassigned_budget_id: str = Field(
        default="unassigned",
        min_length=1,
        description="Budget id given to splits with no budget"
    )

    @field_validator("extra_principal_ratio", "amount_tolerance", "single_split_adjustment_ratio")
    @classmethod
    def quantize_decimals(cls, v: Decimal) -> Decimal:
        """Keep thresholds as exact decimals."""
        return Decimal(str(v))


class StorageSettings(BaseSettings):
    """Retry policy for storage writes."""

    model_config = SettingsConfigDict(
        env_prefix="RECONCILER_STORAGE_",
        extra="ignore"
    )

    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a storage write before giving up"
    )
    retry_wait_min_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Minimum backoff between attempts"
    )
    retry_wait_max_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="Maximum backoff between attempts"
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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for structured logs"
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
    def engine(self) -> EngineSettings:
        return EngineSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

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


@lru_cache()
def get_engine_settings() -> EngineSettings:
    """Engine thresholds (cached separately, read on every calculation)."""
    return get_settings().engine


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an ``<name>_error``
    entry for anything that failed to load. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("engine", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    if results.get("storage"):
        storage = settings.storage
        if storage.retry_wait_max_seconds < storage.retry_wait_min_seconds:
            results["storage"] = False
            results["storage_error"] = "retry_wait_max_seconds is below retry_wait_min_seconds"

    return results


def require_valid_settings() -> Settings:
    """Load settings or raise ConfigurationError naming every broken section."""
    results = validate_all_settings()
    broken = [k for k, v in results.items() if v is False]
    if broken:
        details = "; ".join(f"{k}: {results.get(f'{k}_error', 'invalid')}" for k in broken)
        raise ConfigurationError(f"Invalid configuration: {details}")
    return get_settings()
