"""
Authentication provider implementation.

Wraps the Supabase auth API behind IAuthProvider.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from supabase import Client

from shared.models import Identity

from .exceptions import (
    AuthCredentialsError,
    AuthProviderUnavailableError,
    InvalidTokenError,
    UserExistsError,
)
from .interfaces import IAuthProvider
from .models import AuthSession, token_expiry

logger = logging.getLogger(__name__)


def _status_of(exc: Exception) -> Optional[int]:
    status = getattr(exc, "status", None)
    return status if isinstance(status, int) else None


def is_provider_rejection(exc: Exception) -> bool:
    """True if the provider answered with a 4xx (the request itself was refused)."""
    status = _status_of(exc)
    return status is not None and 400 <= status < 500


def is_user_exists(exc: Exception) -> bool:
    code = getattr(exc, "code", None)
    return code == "user_already_exists" or "already registered" in str(exc).lower()


def identity_from_user(user: Any, access_token: Optional[str] = None, refresh_token: Optional[str] = None) -> Identity:
    """Map a Supabase user object onto an Identity."""
    confirmed_at: Optional[datetime] = getattr(user, "email_confirmed_at", None)
    return Identity(
        id=str(user.id),
        email=getattr(user, "email", None) or "",
        email_verified=confirmed_at is not None,
        expires_at=token_expiry(access_token) if access_token else None,
        refresh_token=refresh_token,
        created_at=getattr(user, "created_at", None),
        last_sign_in=getattr(user, "last_sign_in_at", None),
    )


def session_from_response(response: Any) -> Optional[AuthSession]:
    """Build an AuthSession from a Supabase AuthResponse, if it carries one."""
    session = getattr(response, "session", None)
    if session is None:
        return None
    user = getattr(response, "user", None) or session.user
    identity = identity_from_user(user, session.access_token, session.refresh_token)
    return AuthSession(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=identity.expires_at,
        identity=identity,
    )


class SupabaseAuthProvider(IAuthProvider):
    """
    Identity provider backed by Supabase Auth.

    The supabase client is synchronous, so each call runs in a worker thread
    and the event loop keeps serving other requests meanwhile.
    """

    def __init__(self, auth_client: Client, admin_client: Optional[Client] = None):
        """
        Args:
            auth_client: Client created with the anon key, used for user-facing calls
            admin_client: Service-role client, used to revoke sessions on sign-out
        """
        self._auth = auth_client
        self._admin = admin_client

    async def verify_token(self, token: str) -> Identity:
        try:
            response = await asyncio.to_thread(self._auth.auth.get_user, token)
        except Exception as e:
            if is_provider_rejection(e):
                raise InvalidTokenError()
            logger.warning(f"Token verification failed: {e}")
            raise AuthProviderUnavailableError() from e

        user = getattr(response, "user", None) if response is not None else None
        if user is None:
            raise InvalidTokenError()
        return identity_from_user(user, access_token=token)

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        try:
            response = await asyncio.to_thread(self._auth.auth.refresh_session, refresh_token)
        except Exception as e:
            if is_provider_rejection(e):
                raise InvalidTokenError()
            raise AuthProviderUnavailableError() from e

        session = session_from_response(response)
        if session is None:
            raise InvalidTokenError()
        return session

    async def sign_up(self, email: str, password: str) -> Optional[AuthSession]:
        try:
            response = await asyncio.to_thread(
                self._auth.auth.sign_up, {"email": email, "password": password}
            )
        except Exception as e:
            if is_user_exists(e):
                raise UserExistsError(email)
            if is_provider_rejection(e):
                raise AuthCredentialsError(str(e))
            raise AuthProviderUnavailableError() from e

        session = session_from_response(response)
        if session is not None:
            return session

        # Email confirmation is on; sign in directly in case the provider allows it
        try:
            return await self.sign_in(email, password)
        except AuthCredentialsError:
            logger.info(f"Signed up {email}; session pending email confirmation")
            return None

    async def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            response = await asyncio.to_thread(
                self._auth.auth.sign_in_with_password,
                {"email": email, "password": password},
            )
        except Exception as e:
            if is_provider_rejection(e):
                raise AuthCredentialsError()
            raise AuthProviderUnavailableError() from e

        session = session_from_response(response)
        if session is None:
            raise AuthCredentialsError()
        return session

    async def sign_out(self, token: str) -> None:
        if self._admin is None:
            logger.warning("No service client configured; sign-out is local only")
            return
        try:
            await asyncio.to_thread(self._admin.auth.admin.sign_out, token)
        except Exception as e:
            if is_provider_rejection(e):
                # Already revoked or expired
                return
            raise AuthProviderUnavailableError() from e

    async def reset_password(self, email: str, redirect_to: Optional[str] = None) -> None:
        options = {"redirect_to": redirect_to} if redirect_to else {}
        try:
            await asyncio.to_thread(self._auth.auth.reset_password_for_email, email, options)
        except Exception as e:
            if is_provider_rejection(e):
                raise AuthCredentialsError(str(e))
            raise AuthProviderUnavailableError() from e
