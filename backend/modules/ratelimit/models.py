"""
Rate limiting data models.
"""

import math
from dataclasses import dataclass
from typing import Optional


@dataclass
class FixedWindowCounter:
    """Request count for one window. Resets lazily once ``reset_at`` has passed."""

    count: int = 0
    reset_at: float = 0.0

    def roll(self, now: float, window_seconds: float) -> None:
        """Start a fresh window if the current one has expired."""
        if now >= self.reset_at:
            self.count = 0
            self.reset_at = now + window_seconds

    def remaining(self, limit: int) -> int:
        return max(0, limit - self.count)


@dataclass(frozen=True)
class RateLimitDecision:
    """
    Result of admitting (or refusing) one request.

    Attributes:
        allowed: Whether the request may proceed
        limit: Per-caller budget per window
        remaining: Per-caller requests left in the current window
        reset_at: Unix timestamp when the caller window resets
        global_limit: Process-wide budget per window
        global_remaining: Process-wide requests left in the current window
        global_reset_at: Unix timestamp when the global window resets
        scope: "global" or "caller" when refused, None when allowed
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    global_limit: int
    global_remaining: int
    global_reset_at: float
    scope: Optional[str] = None
    now: float = 0.0

    @property
    def retry_after(self) -> int:
        """Whole seconds until the exhausted window resets (0 when allowed)."""
        if self.allowed:
            return 0
        reset = self.global_reset_at if self.scope == "global" else self.reset_at
        return max(1, math.ceil(reset - self.now))

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
            "X-RateLimit-Global-Remaining": str(self.global_remaining),
            "X-RateLimit-Global-Reset": str(int(self.global_reset_at)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers
