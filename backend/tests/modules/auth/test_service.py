"""Tests for the Supabase auth provider."""

from types import SimpleNamespace

import jwt
import pytest
from unittest.mock import MagicMock

from modules.auth import (
    AuthCredentialsError,
    AuthProviderUnavailableError,
    InvalidTokenError,
    SupabaseAuthProvider,
    UserExistsError,
)
from modules.auth.service import is_provider_rejection, is_user_exists


class ProviderError(Exception):
    """Shaped like the supabase auth client's API errors."""

    def __init__(self, message: str, status: int, code: str = None):
        super().__init__(message)
        self.status = status
        self.code = code


def _token(exp: int = 4_102_444_800) -> str:
    return jwt.encode({"sub": "user-1", "exp": exp}, "test-secret-key-for-testing-only", algorithm="HS256")


def _user(user_id: str = "user-1", email: str = "a@example.com"):
    return SimpleNamespace(
        id=user_id,
        email=email,
        email_confirmed_at="2026-01-01T00:00:00Z",
        created_at=None,
        last_sign_in_at=None,
    )


def _auth_response(access_token: str = None, refresh_token: str = "refresh"):
    user = _user()
    session = None
    if access_token:
        session = SimpleNamespace(access_token=access_token, refresh_token=refresh_token, user=user)
    return SimpleNamespace(user=user, session=session)


@pytest.fixture
def auth_client():
    return MagicMock()


@pytest.fixture
def admin_client():
    return MagicMock()


@pytest.fixture
def provider(auth_client, admin_client):
    return SupabaseAuthProvider(auth_client, admin_client)


class TestErrorClassification:
    def test_rejection(self):
        assert is_provider_rejection(ProviderError("bad", 401))
        assert not is_provider_rejection(ProviderError("down", 503))
        assert not is_provider_rejection(ConnectionError("refused"))

    def test_user_exists(self):
        assert is_user_exists(ProviderError("x", 422, code="user_already_exists"))
        assert is_user_exists(Exception("User already registered"))
        assert not is_user_exists(Exception("weak password"))


class TestVerifyToken:
    @pytest.mark.asyncio
    async def test_maps_user_to_identity(self, provider, auth_client):
        token = _token()
        auth_client.auth.get_user.return_value = SimpleNamespace(user=_user())

        identity = await provider.verify_token(token)

        auth_client.auth.get_user.assert_called_once_with(token)
        assert identity.id == "user-1"
        assert identity.email == "a@example.com"
        assert identity.email_verified is True
        assert identity.expires_at is not None

    @pytest.mark.asyncio
    async def test_rejected_token(self, provider, auth_client):
        auth_client.auth.get_user.side_effect = ProviderError("invalid JWT", 401)

        with pytest.raises(InvalidTokenError):
            await provider.verify_token(_token())

    @pytest.mark.asyncio
    async def test_missing_user(self, provider, auth_client):
        auth_client.auth.get_user.return_value = SimpleNamespace(user=None)

        with pytest.raises(InvalidTokenError):
            await provider.verify_token(_token())

    @pytest.mark.asyncio
    async def test_provider_failure(self, provider, auth_client):
        auth_client.auth.get_user.side_effect = ConnectionError("refused")

        with pytest.raises(AuthProviderUnavailableError):
            await provider.verify_token(_token())


class TestSignIn:
    @pytest.mark.asyncio
    async def test_returns_session(self, provider, auth_client):
        access = _token()
        auth_client.auth.sign_in_with_password.return_value = _auth_response(access)

        session = await provider.sign_in("a@example.com", "password")

        auth_client.auth.sign_in_with_password.assert_called_once_with(
            {"email": "a@example.com", "password": "password"}
        )
        assert session.access_token == access
        assert session.refresh_token == "refresh"
        assert session.identity.id == "user-1"

    @pytest.mark.asyncio
    async def test_wrong_password(self, provider, auth_client):
        auth_client.auth.sign_in_with_password.side_effect = ProviderError("Invalid login", 400)

        with pytest.raises(AuthCredentialsError):
            await provider.sign_in("a@example.com", "wrong")


class TestSignUp:
    @pytest.mark.asyncio
    async def test_returns_session_when_issued(self, provider, auth_client):
        auth_client.auth.sign_up.return_value = _auth_response(_token())

        session = await provider.sign_up("a@example.com", "password")

        assert session is not None
        auth_client.auth.sign_in_with_password.assert_not_called()

    @pytest.mark.asyncio
    async def test_falls_back_to_sign_in(self, provider, auth_client):
        auth_client.auth.sign_up.return_value = _auth_response(None)
        auth_client.auth.sign_in_with_password.return_value = _auth_response(_token())

        session = await provider.sign_up("a@example.com", "password")

        assert session is not None
        auth_client.auth.sign_in_with_password.assert_called_once()

    @pytest.mark.asyncio
    async def test_pending_confirmation(self, provider, auth_client):
        auth_client.auth.sign_up.return_value = _auth_response(None)
        auth_client.auth.sign_in_with_password.side_effect = ProviderError("Email not confirmed", 400)

        assert await provider.sign_up("a@example.com", "password") is None

    @pytest.mark.asyncio
    async def test_existing_user(self, provider, auth_client):
        auth_client.auth.sign_up.side_effect = ProviderError(
            "User already registered", 422, code="user_already_exists"
        )

        with pytest.raises(UserExistsError) as exc_info:
            await provider.sign_up("a@example.com", "password")
        assert exc_info.value.details == {"email": "a@example.com"}


class TestRefreshAndSignOut:
    @pytest.mark.asyncio
    async def test_refresh_session(self, provider, auth_client):
        auth_client.auth.refresh_session.return_value = _auth_response(_token(), "next-refresh")

        session = await provider.refresh_session("refresh")

        auth_client.auth.refresh_session.assert_called_once_with("refresh")
        assert session.refresh_token == "next-refresh"

    @pytest.mark.asyncio
    async def test_refresh_rejected(self, provider, auth_client):
        auth_client.auth.refresh_session.side_effect = ProviderError("Invalid Refresh Token", 400)

        with pytest.raises(InvalidTokenError):
            await provider.refresh_session("stale")

    @pytest.mark.asyncio
    async def test_sign_out_revokes_with_admin_client(self, provider, admin_client):
        await provider.sign_out("token")
        admin_client.auth.admin.sign_out.assert_called_once_with("token")

    @pytest.mark.asyncio
    async def test_sign_out_without_admin_client(self, auth_client):
        await SupabaseAuthProvider(auth_client).sign_out("token")

    @pytest.mark.asyncio
    async def test_reset_password_passes_redirect(self, provider, auth_client):
        await provider.reset_password("a@example.com", "https://app/reset")

        auth_client.auth.reset_password_for_email.assert_called_once_with(
            "a@example.com", {"redirect_to": "https://app/reset"}
        )
