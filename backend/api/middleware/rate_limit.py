"""
Rate limiting middleware.

Runs ahead of every gate. The caller key is the identity id when the
bearer token is already in the session cache, otherwise the client address.
Every limited response carries the remaining budget and reset times; a 429
adds Retry-After.
"""

import logging
from typing import Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from modules.auth import SessionCache
from modules.ratelimit import RateLimiter, RateLimitExceededError

logger = logging.getLogger(__name__)

ANONYMOUS_KEY = "anonymous"
EXEMPT_PATHS = frozenset({"/api/health", "/health"})


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return request.query_params.get("token")


def caller_key(request: Request, session_cache: Optional[SessionCache]) -> str:
    """Identity id for a cached token, else client host, else a shared anonymous key."""
    token = _bearer_token(request)
    if token and session_cache is not None:
        identity = session_cache.resolve(token)
        if identity is not None:
            return f"user:{identity.id}"
    if request.client and request.client.host:
        return f"ip:{request.client.host}"
    return ANONYMOUS_KEY


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Admits requests through the global and per-caller windows.

    The limiter and session cache are looked up per request so the service
    container can be swapped (tests reset it between cases).
    """

    def __init__(
        self,
        app,
        limiter: Callable[[], RateLimiter],
        session_cache: Callable[[], Optional[SessionCache]],
        enabled: bool = True,
    ):
        super().__init__(app)
        self._limiter = limiter
        self._session_cache = session_cache
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next):
        if not self.enabled or request.url.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        decision = self._limiter().admit(caller_key(request, self._session_cache()))
        if not decision.allowed:
            error = RateLimitExceededError(decision)
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_dict(),
                headers=error.headers,
            )

        response = await call_next(request)
        for name, value in decision.headers().items():
            response.headers[name] = value
        return response
