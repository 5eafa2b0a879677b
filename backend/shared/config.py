"""
Centralized configuration for the CrateMatch backend.

All settings are loaded from environment variables with sensible defaults.
Module-specific settings are namespaced by prefix (e.g., SUPABASE_*, RATE_LIMIT_*).
"""

from functools import lru_cache
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "CrateMatch API"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    reload: bool = False

    # CORS settings
    cors_origins: list[str] = ["http://localhost:3000"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 100  # per caller, per window
    rate_limit_global_requests: int = 1000  # all callers, per window
    rate_limit_window: int = 60  # seconds
    rate_limit_sweep_seconds: int = 120

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    supabase_storage_bucket: str = "cratematch-files"
    machines_table: str = "machines"

    # Session cache (bearer token -> verified identity)
    session_cache_ttl_seconds: int = 300
    session_cache_sweep_seconds: int = 600
    token_refresh_threshold_seconds: int = 300
    auth_verify_attempts: int = 3
    auth_verify_backoff_seconds: float = 0.2

    # Entitlements
    entitlement_cache_ttl_seconds: int = 120
    entitlement_cache_sweep_seconds: int = 300
    trial_days: int = 7
    free_daily_export_limit: int = 1

    # Local files
    data_dir: Path = Path("data")
    database_cache_max_age_seconds: int = 24 * 60 * 60
    database_cache_sweep_seconds: int = 60 * 60
    max_upload_bytes: int = 200 * 1024 * 1024

    # Playlist import jobs
    playlist_importer: str = ""  # "package.module:callable"
    default_threshold: int = 90
    progress_heartbeat_seconds: float = 3.0
    free_track_limit_pattern: str = (
        "Free users are limited to importing playlists with 50 tracks or fewer"
    )

    @property
    def uploads_dir(self) -> Path:
        """Working copies handed to the importer."""
        return self.data_dir / "uploads"

    @property
    def cache_dir(self) -> Path:
        """Per-user cached copies of uploaded databases."""
        return self.data_dir / "uploads" / "cache"

    @property
    def staging_dir(self) -> Path:
        """Shared directory the importer writes generated crates into."""
        return self.data_dir / "uploads" / "Subcrates"

    @property
    def crates_dir(self) -> Path:
        """Per-user directories of claimed, downloadable crates."""
        return self.data_dir / "crates"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
