"""
Tests for environment-driven configuration.
"""

from decimal import Decimal

import pytest

from reconciler.config import (
    ConfigurationError,
    get_engine_settings,
    get_settings,
    require_valid_settings,
    validate_all_settings,
)


class TestSettings:
    """Tests for defaults and environment overrides."""

    def test_defaults(self):
        engine = get_engine_settings()
        assert engine.advance_threshold_days == 7
        assert engine.extra_principal_ratio == Decimal("1.10")
        assert engine.due_soon_window_days == 3
        assert engine.amount_tolerance == Decimal("0.01")
        assert engine.debounce_seconds == 0.0
        assert get_settings().storage.retry_attempts == 3

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("RECONCILER_ADVANCE_THRESHOLD_DAYS", "14")
        monkeypatch.setenv("RECONCILER_STORAGE_RETRY_ATTEMPTS", "5")
        assert get_engine_settings().advance_threshold_days == 14
        assert get_settings().storage.retry_attempts == 5

    def test_engine_settings_cached(self):
        assert get_engine_settings() is get_engine_settings()

    def test_validate_all_settings_ok(self):
        results = validate_all_settings()
        assert results["engine"] is True
        assert results["storage"] is True
        assert require_valid_settings() is get_settings()

    def test_invalid_value_reported(self, monkeypatch):
        monkeypatch.setenv("RECONCILER_ADVANCE_THRESHOLD_DAYS", "-1")
        results = validate_all_settings()
        assert results["engine"] is False
        assert "engine_error" in results

    def test_inverted_backoff_reported(self, monkeypatch):
        monkeypatch.setenv("RECONCILER_STORAGE_RETRY_WAIT_MIN_SECONDS", "10")
        monkeypatch.setenv("RECONCILER_STORAGE_RETRY_WAIT_MAX_SECONDS", "1")
        results = validate_all_settings()
        assert results["storage"] is False

    def test_require_valid_settings_raises(self, monkeypatch):
        monkeypatch.setenv("RECONCILER_EXTRA_PRINCIPAL_RATIO", "0.5")
        with pytest.raises(ConfigurationError) as exc_info:
            require_valid_settings()
        assert "engine" in str(exc_info.value)
