"""
Rate limiting exceptions.
"""

from shared.exceptions import RateLimitError

from .models import RateLimitDecision


class RateLimitExceededError(RateLimitError):
    """Raised when the global or per-caller window is exhausted."""

    def __init__(self, decision: RateLimitDecision):
        prefix = "Server is busy" if decision.scope == "global" else "Too many requests"
        super().__init__(
            f"{prefix}. Try again in {decision.retry_after} seconds.",
            code="RATE_LIMITED",
            details={"retryAfter": decision.retry_after, "scope": decision.scope},
        )
        self.decision = decision

    @property
    def headers(self) -> dict[str, str]:
        return self.decision.headers()
