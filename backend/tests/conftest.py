"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules:
token and identity factories, a fake identity provider, and a service
container wired with in-memory fakes for route tests.
"""

import pytest
from datetime import datetime, timezone, timedelta
from typing import Any, Optional
from unittest.mock import MagicMock

import jwt  # PyJWT

from api.dependencies import ServiceContainer, reset_container, set_container
from modules.auth import AuthSession, InvalidTokenError, AuthProviderUnavailableError
from modules.crates.storage import DatabaseStorage
from modules.entitlements import InMemoryEntitlementRepository
from shared.config import Settings
from shared.models import Identity


def create_test_token(
    user_id: str = "test-user-123",
    email: str = "test@example.com",
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    """
    Create an access token with the claims the backend reads.

    The signature is irrelevant: tokens are verified by the identity
    provider, which tests replace with FakeAuthProvider.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": int((now + expires_in).timestamp()),
        "iat": int(now.timestamp()),
    }
    return jwt.encode(payload, "test-secret-key-for-testing-only", algorithm="HS256")


def make_identity(
    user_id: str = "test-user-123",
    email: str = "test@example.com",
    expires_at: Optional[datetime] = None,
    refresh_token: Optional[str] = None,
) -> Identity:
    return Identity(
        id=user_id,
        email=email,
        email_verified=True,
        expires_at=expires_at,
        refresh_token=refresh_token,
    )


class FakeAuthProvider:
    """In-memory identity provider."""

    def __init__(self) -> None:
        self.tokens: dict[str, Identity] = {}
        self.refresh_tokens: dict[str, AuthSession] = {}
        self.verify_calls: list[str] = []
        self.unavailable_failures = 0
        self.signed_out: list[str] = []

    def add_user(self, identity: Identity, token: Optional[str] = None) -> str:
        token = token or create_test_token(identity.id, identity.email)
        self.tokens[token] = identity
        return token

    async def verify_token(self, token: str) -> Identity:
        self.verify_calls.append(token)
        if self.unavailable_failures > 0:
            self.unavailable_failures -= 1
            raise AuthProviderUnavailableError()
        identity = self.tokens.get(token)
        if identity is None:
            raise InvalidTokenError()
        return identity

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        session = self.refresh_tokens.get(refresh_token)
        if session is None:
            raise InvalidTokenError()
        self.tokens[session.access_token] = session.identity
        return session

    async def sign_up(self, email: str, password: str) -> Optional[AuthSession]:
        return None

    async def sign_in(self, email: str, password: str) -> AuthSession:
        raise InvalidTokenError()

    async def sign_out(self, token: str) -> None:
        self.signed_out.append(token)

    async def reset_password(self, email: str, redirect_to: Optional[str] = None) -> None:
        return None


def make_storage_client(download: Any = b"database-bytes") -> MagicMock:
    """MagicMock shaped like a supabase client's storage API."""
    client = MagicMock()
    bucket = client.storage.from_.return_value
    if isinstance(download, Exception):
        bucket.download.side_effect = download
    else:
        bucket.download.return_value = download
    bucket.list.return_value = []
    return client


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing every local directory at a temp dir."""
    return Settings(
        _env_file=None,
        data_dir=tmp_path / "data",
        supabase_url="",
        progress_heartbeat_seconds=0.05,
        auth_verify_backoff_seconds=0,
    )


@pytest.fixture
def auth_provider() -> FakeAuthProvider:
    return FakeAuthProvider()


@pytest.fixture
def entitlement_repository() -> InMemoryEntitlementRepository:
    return InMemoryEntitlementRepository()


@pytest.fixture
def storage_client() -> MagicMock:
    return make_storage_client()


@pytest.fixture
def importer_calls() -> list[dict]:
    return []


@pytest.fixture
def fake_importer(importer_calls, test_settings):
    """Blocking importer that reports progress and writes one crate into staging."""

    def importer(playlist_url, on_progress, threshold, database_path, is_free_user):
        importer_calls.append(
            {
                "playlist_url": playlist_url,
                "threshold": threshold,
                "database_path": database_path,
                "is_free_user": is_free_user,
            }
        )
        on_progress(42)
        on_progress({"current": 3, "total": 4})
        staging = test_settings.staging_dir
        staging.mkdir(parents=True, exist_ok=True)
        (staging / "Road Trip.crate").write_bytes(b"crate")
        return {"playlistName": "Road Trip", "matched": 3, "total": 4}

    return importer


@pytest.fixture
def container(test_settings, auth_provider, entitlement_repository, storage_client, fake_importer):
    """Service container wired with fakes and installed for the app."""
    container = ServiceContainer(
        test_settings,
        supabase=MagicMock(),
        auth_provider=auth_provider,
        entitlement_repository=entitlement_repository,
        storage=DatabaseStorage(storage_client),
        importer=fake_importer,
    )
    container.prepare_directories()
    set_container(container)
    yield container
    reset_container()


@pytest.fixture
def client(container):
    """Test client against the real app, using the fake container."""
    from fastapi.testclient import TestClient
    from api.app import app

    return TestClient(app)


@pytest.fixture
def test_user_id() -> str:
    """Provide a consistent test user ID."""
    return "test-user-123"


@pytest.fixture
def test_user_email() -> str:
    """Provide a consistent test user email."""
    return "test@example.com"


@pytest.fixture
def identity(test_user_id, test_user_email) -> Identity:
    return make_identity(test_user_id, test_user_email)


@pytest.fixture
def auth_token(auth_provider, identity) -> str:
    """A token the fake provider accepts."""
    return auth_provider.add_user(identity)


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    """Create authorization headers with a valid token."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def token_factory():
    """Expose create_test_token to test modules."""
    return create_test_token
