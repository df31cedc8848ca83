"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from subly.config import AppSettings, SyncSettings, get_settings, validate_all_settings


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Run from an empty directory so no .env file is picked up."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "STORAGE_BACKEND",
        "MAX_UPLOAD_SIZE_MB",
        "RENEWAL_WINDOW_DAYS",
        "SYNC_DEDUPE_INSERTS",
        "SYNC_REFRESH_AFTER_MUTATION",
        "CLOUDINARY_CLOUD_NAME",
        "CLOUDINARY_API_KEY",
        "CLOUDINARY_API_SECRET",
        "GOOGLE_SHEETS_CREDENTIALS_PATH",
        "GOOGLE_SHEETS_SPREADSHEET_ID",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestAppSettings:

    def test_defaults(self):
        settings = AppSettings()
        assert settings.storage_backend == "memory"
        assert settings.renewal_window_days == 7
        assert settings.max_upload_size_bytes == 10 * 1024 * 1024

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        monkeypatch.setenv("RENEWAL_WINDOW_DAYS", "14")
        settings = AppSettings()
        assert settings.storage_backend == "google_sheets"
        assert settings.renewal_window_days == 14

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            AppSettings(storage_backend="postgres")

    def test_window_bounds(self):
        with pytest.raises(ValidationError):
            AppSettings(renewal_window_days=0)


class TestSyncSettings:

    def test_defaults(self):
        settings = SyncSettings()
        assert settings.dedupe_inserts
        assert settings.refresh_after_mutation

    def test_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("SYNC_DEDUPE_INSERTS", "false")
        assert not SyncSettings().dedupe_inserts


class TestValidateAllSettings:

    def test_reports_missing_external_services(self):
        results = validate_all_settings()
        assert results["sync"] is True
        assert results["app"] is True
        assert results["cloudinary"] is False
        assert "cloudinary_error" in results

    def test_cloudinary_configured(self, monkeypatch):
        monkeypatch.setenv("CLOUDINARY_CLOUD_NAME", "demo")
        monkeypatch.setenv("CLOUDINARY_API_KEY", "key")
        monkeypatch.setenv("CLOUDINARY_API_SECRET", "secret")
        assert validate_all_settings()["cloudinary"] is True
