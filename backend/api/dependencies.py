"""
Dependency injection setup for FastAPI.

This module provides the "container" that wires together all module
implementations. Each service is built lazily on first access and owned by
the container, so a test can start from a fresh container (or one built
from fakes) instead of sharing process-wide state.
"""

import logging
from typing import TYPE_CHECKING, Any, Optional

from shared.config import Settings, get_settings

# Type checking imports for interfaces (avoids circular imports)
if TYPE_CHECKING:
    from supabase import Client

    from api.middleware.auth import AuthGate
    from modules.auth import IAuthProvider, SessionCache
    from modules.crates.artifacts import CrateArtifactStore
    from modules.crates.database_cache import DatabaseFileCache
    from modules.crates.importer import PlaylistImporter
    from modules.crates.registry import JobRegistry
    from modules.crates.runner import JobRunner
    from modules.crates.storage import DatabaseStorage
    from modules.entitlements import (
        EntitlementCache,
        EntitlementService,
        IEntitlementRepository,
    )
    from modules.ratelimit import RateLimiter
    from shared.scheduler import Scheduler

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class ServiceContainer:
    """
    Container for all service instances.

    Services are created lazily on first access and cached for the
    container's lifetime. Any of them can be supplied up front instead,
    which is how tests swap in fakes for Supabase-backed pieces.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        supabase: "Optional[Client]" = None,
        auth_provider: "Optional[IAuthProvider]" = None,
        entitlement_repository: "Optional[IEntitlementRepository]" = None,
        storage: "Optional[DatabaseStorage]" = None,
        importer: "Optional[PlaylistImporter]" = _UNSET,
    ) -> None:
        self._settings = settings
        self._supabase = supabase
        self._auth_provider = auth_provider
        self._session_cache: "SessionCache | None" = None
        self._auth_gate: "AuthGate | None" = None
        self._entitlement_repository = entitlement_repository
        self._entitlement_cache: "EntitlementCache | None" = None
        self._entitlement_service: "EntitlementService | None" = None
        self._rate_limiter: "RateLimiter | None" = None
        self._job_registry: "JobRegistry | None" = None
        self._storage = storage
        self._database_cache: "DatabaseFileCache | None" = None
        self._artifacts: "CrateArtifactStore | None" = None
        self._importer = importer
        self._job_runner: "JobRunner | None" = None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def supabase(self) -> "Client":
        """Service-role Supabase client."""
        if self._supabase is None:
            from shared.database import get_supabase_client
            self._supabase = get_supabase_client()
        return self._supabase

    @property
    def auth_provider(self) -> "IAuthProvider":
        if self._auth_provider is None:
            from modules.auth import SupabaseAuthProvider
            from shared.database import get_supabase_auth_client
            admin = self.supabase if self.settings.supabase_service_role_key else None
            self._auth_provider = SupabaseAuthProvider(get_supabase_auth_client(), admin)
        return self._auth_provider

    @property
    def session_cache(self) -> "SessionCache":
        if self._session_cache is None:
            from modules.auth import SessionCache
            self._session_cache = SessionCache(
                ttl_seconds=self.settings.session_cache_ttl_seconds,
                refresh_threshold_seconds=self.settings.token_refresh_threshold_seconds,
            )
        return self._session_cache

    @property
    def auth_gate(self) -> "AuthGate":
        if self._auth_gate is None:
            from api.middleware.auth import AuthGate
            self._auth_gate = AuthGate(
                self.auth_provider,
                self.session_cache,
                verify_attempts=self.settings.auth_verify_attempts,
                verify_backoff_seconds=self.settings.auth_verify_backoff_seconds,
            )
        return self._auth_gate

    @property
    def entitlement_repository(self) -> "IEntitlementRepository":
        if self._entitlement_repository is None:
            if self.settings.supabase_url:
                from modules.entitlements import SupabaseEntitlementRepository
                self._entitlement_repository = SupabaseEntitlementRepository(
                    self.supabase, self.settings.machines_table
                )
            else:
                from modules.entitlements import InMemoryEntitlementRepository
                logger.warning("SUPABASE_URL not set; entitlements are kept in memory")
                self._entitlement_repository = InMemoryEntitlementRepository()
        return self._entitlement_repository

    @property
    def entitlement_cache(self) -> "EntitlementCache":
        if self._entitlement_cache is None:
            from modules.entitlements import EntitlementCache
            self._entitlement_cache = EntitlementCache(self.settings.entitlement_cache_ttl_seconds)
        return self._entitlement_cache

    @property
    def entitlements(self) -> "EntitlementService":
        if self._entitlement_service is None:
            from modules.entitlements import EntitlementService
            self._entitlement_service = EntitlementService(
                self.entitlement_repository,
                self.entitlement_cache,
                trial_days=self.settings.trial_days,
                daily_export_limit=self.settings.free_daily_export_limit,
            )
        return self._entitlement_service

    @property
    def rate_limiter(self) -> "RateLimiter":
        if self._rate_limiter is None:
            from modules.ratelimit import RateLimiter
            self._rate_limiter = RateLimiter(
                per_caller_limit=self.settings.rate_limit_requests,
                global_limit=self.settings.rate_limit_global_requests,
                window_seconds=self.settings.rate_limit_window,
            )
        return self._rate_limiter

    @property
    def job_registry(self) -> "JobRegistry":
        if self._job_registry is None:
            from modules.crates.registry import JobRegistry
            self._job_registry = JobRegistry()
        return self._job_registry

    @property
    def storage(self) -> "DatabaseStorage":
        if self._storage is None:
            from modules.crates.storage import DatabaseStorage
            from shared.database import get_supabase_user_client
            self._storage = DatabaseStorage(
                self.supabase,
                bucket=self.settings.supabase_storage_bucket,
                user_client_factory=get_supabase_user_client,
            )
        return self._storage

    @property
    def database_cache(self) -> "DatabaseFileCache":
        if self._database_cache is None:
            from modules.crates.database_cache import DatabaseFileCache
            self._database_cache = DatabaseFileCache(
                self.storage,
                cache_dir=self.settings.cache_dir,
                uploads_dir=self.settings.uploads_dir,
                max_age_seconds=self.settings.database_cache_max_age_seconds,
            )
        return self._database_cache

    @property
    def artifacts(self) -> "CrateArtifactStore":
        if self._artifacts is None:
            from modules.crates.artifacts import CrateArtifactStore
            self._artifacts = CrateArtifactStore(
                staging_dir=self.settings.staging_dir,
                crates_dir=self.settings.crates_dir,
            )
        return self._artifacts

    @property
    def importer(self) -> "Optional[PlaylistImporter]":
        if self._importer is _UNSET:
            from modules.crates.importer import load_importer
            self._importer = load_importer(self.settings.playlist_importer)
            if self._importer is None:
                logger.warning("PLAYLIST_IMPORTER not set; playlist processing is unavailable")
        return self._importer

    @property
    def job_runner(self) -> "JobRunner":
        if self._job_runner is None:
            from modules.crates.runner import JobRunner
            self._job_runner = JobRunner(
                self.job_registry,
                self.database_cache,
                self.artifacts,
                importer=self.importer,
                heartbeat_seconds=self.settings.progress_heartbeat_seconds,
                track_limit_pattern=self.settings.free_track_limit_pattern,
            )
        return self._job_runner

    def build_scheduler(self) -> "Scheduler":
        """Background sweeps for every cache this container owns."""
        from shared.scheduler import Scheduler

        settings = self.settings
        scheduler = Scheduler()
        scheduler.add("session-cache", settings.session_cache_sweep_seconds, self.session_cache.sweep)
        scheduler.add("entitlement-cache", settings.entitlement_cache_sweep_seconds, self.entitlement_cache.sweep)
        scheduler.add("rate-limiter", settings.rate_limit_sweep_seconds, self.rate_limiter.sweep)
        scheduler.add("database-cache", settings.database_cache_sweep_seconds, self.database_cache.cleanup_expired)
        return scheduler

    def prepare_directories(self) -> None:
        """Create the local working directories."""
        settings = self.settings
        for directory in (settings.uploads_dir, settings.cache_dir, settings.staging_dir, settings.crates_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def reset(self) -> None:
        """
        Drop all lazily built services.

        Services passed to the constructor are dropped too; primarily for testing.
        """
        self.__init__(self._settings)


# Module-level container singleton
_container: ServiceContainer | None = None


def get_container() -> ServiceContainer:
    """Get the singleton service container."""
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def set_container(container: ServiceContainer) -> None:
    """Install a pre-built container (used by tests)."""
    global _container
    _container = container


def reset_container() -> None:
    """
    Reset the service container.

    This clears the cached container, so the next call to get_container()
    will create a fresh container with new service instances.

    Primarily used for testing.
    """
    global _container
    _container = None


# FastAPI dependency functions
# These are the functions that should be used in route Depends() calls


def get_auth_gate() -> "AuthGate":
    """FastAPI dependency for the auth gate."""
    return get_container().auth_gate


def get_auth_provider() -> "IAuthProvider":
    """FastAPI dependency for the identity provider."""
    return get_container().auth_provider


def get_session_cache() -> "SessionCache":
    """FastAPI dependency for the session cache."""
    return get_container().session_cache


def get_entitlement_service() -> "EntitlementService":
    """FastAPI dependency for the entitlement service."""
    return get_container().entitlements


def get_rate_limiter() -> "RateLimiter":
    """FastAPI dependency for the rate limiter."""
    return get_container().rate_limiter


def get_database_storage() -> "DatabaseStorage":
    """FastAPI dependency for database file storage."""
    return get_container().storage


def get_database_cache() -> "DatabaseFileCache":
    """FastAPI dependency for the local database cache."""
    return get_container().database_cache


def get_artifact_store() -> "CrateArtifactStore":
    """FastAPI dependency for claimed crate files."""
    return get_container().artifacts


def get_job_runner() -> "JobRunner":
    """FastAPI dependency for the playlist job runner."""
    return get_container().job_runner


def get_app_settings() -> Settings:
    """FastAPI dependency for the container's settings."""
    return get_container().settings
