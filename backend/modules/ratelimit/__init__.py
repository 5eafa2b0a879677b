"""
Rate limiting module.

Public API:
- RateLimiter: global + per-caller fixed windows
- RateLimitDecision: outcome of one admit() call, with response headers
- RateLimitExceededError: 429 error carrying Retry-After
"""

from .models import FixedWindowCounter, RateLimitDecision
from .service import RateLimiter
from .exceptions import RateLimitExceededError

__all__ = [
    "FixedWindowCounter",
    "RateLimitDecision",
    "RateLimiter",
    "RateLimitExceededError",
]
