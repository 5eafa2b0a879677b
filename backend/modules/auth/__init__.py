"""
Authentication module.

Verifies bearer tokens against the identity provider and caches the result.

Public API:
- IAuthProvider: Interface to the identity provider
- SupabaseAuthProvider: Supabase-backed implementation
- SessionCache: token -> identity memoization with silent refresh
- Auth exceptions: MissingTokenError, InvalidTokenError, etc.
"""

from .interfaces import IAuthProvider
from .models import AuthSession, CachedSession, token_expiry
from .session_cache import SessionCache
from .service import SupabaseAuthProvider
from .exceptions import (
    MissingTokenError,
    InvalidTokenError,
    ExpiredTokenError,
    AuthCredentialsError,
    UserExistsError,
    AuthProviderUnavailableError,
)

__all__ = [
    # Interface
    "IAuthProvider",
    # Implementations
    "SupabaseAuthProvider",
    "SessionCache",
    # Models
    "AuthSession",
    "CachedSession",
    "token_expiry",
    # Exceptions
    "MissingTokenError",
    "InvalidTokenError",
    "ExpiredTokenError",
    "AuthCredentialsError",
    "UserExistsError",
    "AuthProviderUnavailableError",
]
