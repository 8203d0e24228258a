"""
Tests for environment-driven configuration.
"""

from pathlib import Path

import pytest

from flatmate.config import (
    AppSettings,
    SecuritySettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)


class TestSettings:

    def test_defaults(self):
        security = SecuritySettings()
        assert security.max_failed_attempts == 5
        assert security.lockout_minutes == 15
        assert (security.base_delay_ms, security.max_delay_ms) == (1000, 16000)

        storage = StorageSettings()
        assert storage.file_path == Path(".flatmate") / "store.json"
        assert storage.conflict_retry_attempts == 3

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("FLATMATE_SECURITY_MAX_FAILED_ATTEMPTS", "3")
        monkeypatch.setenv("FLATMATE_STORAGE_BACKEND", "memory")
        assert SecuritySettings().max_failed_attempts == 3
        assert StorageSettings().backend == "memory"

    def test_invalid_values_rejected(self, monkeypatch):
        monkeypatch.setenv("FLATMATE_STORAGE_BACKEND", "postgres")
        with pytest.raises(ValueError):
            StorageSettings()

    def test_currency_normalized(self):
        assert AppSettings(default_currency="eur").default_currency == "EUR"

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()

    def test_validate_all_settings(self, monkeypatch):
        get_settings.cache_clear()
        monkeypatch.setenv("FLATMATE_SECURITY_LOCKOUT_MINUTES", "0")
        results = validate_all_settings()
        assert results["storage"] is True
        assert results["app"] is True
        assert results["security"] is False
        assert "security_error" in results
