"""Tests for shared/config.py."""

from pathlib import Path

from shared.config import Settings, get_settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        """Defaults should match the documented limits."""
        for name in ("RATE_LIMIT_REQUESTS", "TRIAL_DAYS", "FREE_DAILY_EXPORT_LIMIT", "DATA_DIR"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.rate_limit_requests == 100
        assert settings.rate_limit_global_requests == 1000
        assert settings.rate_limit_window == 60
        assert settings.session_cache_ttl_seconds == 300
        assert settings.entitlement_cache_ttl_seconds == 120
        assert settings.trial_days == 7
        assert settings.free_daily_export_limit == 1
        assert settings.database_cache_max_age_seconds == 86400
        assert settings.default_threshold == 90
        assert settings.port == 3000

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_REQUESTS", "5")
        monkeypatch.setenv("TRIAL_DAYS", "14")
        monkeypatch.setenv("SUPABASE_STORAGE_BUCKET", "other-bucket")

        settings = Settings(_env_file=None)

        assert settings.rate_limit_requests == 5
        assert settings.trial_days == 14
        assert settings.supabase_storage_bucket == "other-bucket"

    def test_local_directories_derive_from_data_dir(self, tmp_path):
        settings = Settings(_env_file=None, data_dir=tmp_path)

        assert settings.uploads_dir == tmp_path / "uploads"
        assert settings.cache_dir == tmp_path / "uploads" / "cache"
        assert settings.staging_dir == tmp_path / "uploads" / "Subcrates"
        assert settings.crates_dir == tmp_path / "crates"
        assert isinstance(settings.data_dir, Path)


class TestGetSettings:
    def test_is_cached(self):
        assert get_settings() is get_settings()
