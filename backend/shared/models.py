"""
Shared data models used across modules.

These models are shared infrastructure, not business logic.
Module-specific models should stay in their respective module directories.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field


class Identity(BaseModel):
    """
    A verified identity from the external auth provider.

    This is a read-only copy of the provider's user record, cached per
    bearer token and attached to the request by the auth gate.
    """

    id: str = Field(..., description="User ID (UUID from Supabase)")
    email: str = Field(..., description="User's email address")
    email_verified: bool = Field(default=False, description="Whether email is verified")

    # Token details
    expires_at: Optional[datetime] = Field(None, description="Access token expiry")
    refresh_token: Optional[str] = Field(
        None,
        description="Refresh token supplied by the client, if any",
        repr=False,
    )

    # Timestamps (optional, depend on provider response)
    created_at: Optional[datetime] = Field(None, description="Account creation time")
    last_sign_in: Optional[datetime] = Field(None, description="Last sign-in time")

    model_config = {
        "frozen": True,  # Make immutable for safety
        "extra": "ignore",  # Ignore extra fields from the provider
    }

    def expires_within(self, seconds: float, now: Optional[datetime] = None) -> bool:
        """True if the token expires within ``seconds`` but has not expired yet."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        remaining = (self.expires_at - now).total_seconds()
        return 0 < remaining <= seconds

    def public_dict(self) -> dict:
        """Identity fields safe to return to the client."""
        return self.model_dump(mode="json", exclude={"refresh_token"})
