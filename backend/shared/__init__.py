"""
Shared infrastructure for the CrateMatch backend.

This package contains cross-cutting concerns that are used by multiple modules:
- config: Centralized settings management
- database: Supabase client factory
- exceptions: Base exception classes
- scheduler: Periodic background sweeps
- logging_config: Root logging setup

Note: Business logic should NOT go here. This is for infrastructure only.
"""

from .config import Settings, get_settings
from .database import (
    get_supabase_client,
    get_supabase_auth_client,
    get_supabase_user_client,
    reset_client_cache,
)
from .exceptions import (
    CrateMatchError,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    RateLimitError,
    ExternalServiceError,
)
from .models import Identity
from .scheduler import PeriodicTask, Scheduler

__all__ = [
    "Settings",
    "get_settings",
    "get_supabase_client",
    "get_supabase_auth_client",
    "get_supabase_user_client",
    "reset_client_cache",
    "CrateMatchError",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "RateLimitError",
    "ExternalServiceError",
    "Identity",
    "PeriodicTask",
    "Scheduler",
]
