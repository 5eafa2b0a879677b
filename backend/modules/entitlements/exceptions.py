"""
Entitlement module exceptions.
"""

from shared.exceptions import CrateMatchError, RateLimitError


class EntitlementLookupError(CrateMatchError):
    """Raised when the entitlement store cannot be read."""

    def __init__(self, message: str = "Failed to verify subscription status. Please try again."):
        super().__init__(message, code="SUBSCRIPTION_CHECK_FAILED")


class EntitlementCreateError(CrateMatchError):
    """Raised when a first-time entitlement cannot be persisted."""

    def __init__(self, message: str = "Failed to set up your account. Please try again."):
        super().__init__(message, code="ACCOUNT_SETUP_FAILED")


class QuotaExceededError(RateLimitError):
    """Raised when a free account has used its daily exports."""

    def __init__(self, exports_today: int, limit: int):
        noun = "playlist" if limit == 1 else "playlists"
        super().__init__(
            f"Free users can only export {limit} {noun} per day. "
            "Upgrade to premium for unlimited exports.",
            code="DAILY_EXPORT_LIMIT_EXCEEDED",
            details={
                "exports_today": exports_today,
                "limit": limit,
                "showUpgrade": True,
            },
        )
        self.exports_today = exports_today
        self.limit = limit
