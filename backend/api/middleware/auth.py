"""
Authentication gate.

Resolves the bearer token to an Identity through the session cache, falling
back to the identity provider with bounded retries, and refreshes tokens
that are about to expire.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from api.dependencies import get_auth_gate
from modules.auth import (
    AuthProviderUnavailableError,
    AuthSession,
    ExpiredTokenError,
    IAuthProvider,
    InvalidTokenError,
    MissingTokenError,
    SessionCache,
    token_expiry,
)
from shared.exceptions import CrateMatchError
from shared.models import Identity

from .headers import queue_response_header

logger = logging.getLogger(__name__)

# Bearer token extractor
bearer_scheme = HTTPBearer(auto_error=False)

REFRESH_TOKEN_HEADER = "X-Refresh-Token"
NEW_ACCESS_TOKEN_HEADER = "X-New-Access-Token"
NEW_REFRESH_TOKEN_HEADER = "X-New-Refresh-Token"


@dataclass(frozen=True)
class AuthResult:
    """A resolved identity and the access token to use for the rest of the request."""

    identity: Identity
    access_token: str
    refreshed: Optional[AuthSession] = None


class AuthGate:
    """Token to identity resolution shared by the auth dependencies."""

    def __init__(
        self,
        provider: IAuthProvider,
        cache: SessionCache,
        verify_attempts: int = 3,
        verify_backoff_seconds: float = 0.2,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.provider = provider
        self.cache = cache
        self.verify_attempts = max(1, verify_attempts)
        self.verify_backoff_seconds = verify_backoff_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _verify(self, token: str) -> Identity:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.verify_attempts),
            wait=wait_exponential(multiplier=self.verify_backoff_seconds, max=2),
            retry=retry_if_exception_type(AuthProviderUnavailableError),
            reraise=True,
        ):
            with attempt:
                return await self.provider.verify_token(token)
        raise AuthProviderUnavailableError()

    async def _refresh_expired(self, token: str, refresh_token: Optional[str]) -> AuthResult:
        if not refresh_token:
            raise ExpiredTokenError()
        try:
            session = await self.provider.refresh_session(refresh_token)
        except InvalidTokenError:
            raise ExpiredTokenError()
        identity = session.identity.model_copy(
            update={"expires_at": session.expires_at, "refresh_token": session.refresh_token}
        )
        self.cache.evict(token)
        self.cache.store(session.access_token, identity)
        logger.info(f"Renewed expired session for user {identity.id}")
        return AuthResult(identity, session.access_token, session.model_copy(update={"identity": identity}))

    async def authenticate(self, token: Optional[str], refresh_token: Optional[str] = None) -> AuthResult:
        """
        Resolve ``token`` to an identity.

        Raises:
            MissingTokenError: No token
            InvalidTokenError / ExpiredTokenError: The token is not usable
            AuthProviderUnavailableError: The provider failed after retries
        """
        if not token:
            raise MissingTokenError()

        cached = self.cache.get(token)
        if cached is not None:
            refreshed = await self.cache.maybe_refresh(token, cached.identity, self.provider, refresh_token)
            if refreshed is not None:
                return AuthResult(refreshed.identity, refreshed.access_token, refreshed)
            return AuthResult(cached.identity, token)

        expires_at = token_expiry(token)
        if expires_at is not None and expires_at <= self._clock():
            return await self._refresh_expired(token, refresh_token)

        identity = await self._verify(token)
        if refresh_token:
            identity = identity.model_copy(update={"refresh_token": refresh_token})
        self.cache.store(token, identity)
        return AuthResult(identity, token)


async def _resolve(request: Request, token: Optional[str], gate: AuthGate) -> Identity:
    refresh_token = request.headers.get(REFRESH_TOKEN_HEADER)
    try:
        result = await gate.authenticate(token, refresh_token)
    except CrateMatchError:
        raise
    except Exception as e:
        logger.exception("Unexpected error during authentication")
        raise AuthProviderUnavailableError() from e

    request.state.identity = result.identity
    request.state.access_token = result.access_token
    if result.refreshed is not None:
        queue_response_header(request, NEW_ACCESS_TOKEN_HEADER, result.refreshed.access_token)
        if result.refreshed.refresh_token:
            queue_response_header(request, NEW_REFRESH_TOKEN_HEADER, result.refreshed.refresh_token)
    return result.identity


async def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    gate: AuthGate = Depends(get_auth_gate),
) -> Identity:
    """
    Dependency that requires authentication.

    Use this for endpoints that require a logged-in user.

    Usage:
        @router.get("/protected")
        async def protected_route(identity: Identity = Depends(get_current_identity)):
            return {"user_id": identity.id}
    """
    token = credentials.credentials if credentials else None
    return await _resolve(request, token, gate)


async def get_current_identity_from_query(
    request: Request,
    token: Optional[str] = Query(default=None, description="Access token (EventSource cannot send headers)"),
    gate: AuthGate = Depends(get_auth_gate),
) -> Identity:
    """Dependency for streaming endpoints: the token comes from ``?token=``."""
    return await _resolve(request, token, gate)


async def get_optional_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    gate: AuthGate = Depends(get_auth_gate),
) -> Optional[Identity]:
    """
    Dependency that optionally resolves the caller.

    Never rejects: a missing, invalid or unverifiable token yields None.
    """
    if credentials is None:
        return None
    try:
        return await _resolve(request, credentials.credentials, gate)
    except CrateMatchError as e:
        logger.debug(f"Optional auth ignored: {e.code}")
        return None


# Type aliases for cleaner route definitions
RequireAuth = Depends(get_current_identity)
OptionalAuth = Depends(get_optional_identity)
