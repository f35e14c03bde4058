"""Configuration package."""

from reconciler.config.settings import (
    AppSettings,
    ConfigurationError,
    EngineSettings,
    Settings,
    StorageSettings,
    get_engine_settings,
    get_settings,
    require_valid_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ConfigurationError",
    "EngineSettings",
    "Settings",
    "StorageSettings",
    "get_engine_settings",
    "get_settings",
    "require_valid_settings",
    "validate_all_settings",
]
