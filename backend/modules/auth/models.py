"""
Authentication module data models.

These models define the data structures used by the auth module
and exposed to other modules through the interface.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import jwt
from pydantic import BaseModel, Field

from shared.models import Identity


def token_expiry(token: str) -> Optional[datetime]:
    """
    Read the ``exp`` claim of an access token.

    The signature is not checked here; the auth provider is the authority
    on whether the token is valid. Returns None for opaque or malformed tokens.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)


class AuthSession(BaseModel):
    """A token pair issued by the auth provider, with the identity it belongs to."""

    access_token: str = Field(..., description="Bearer token for API calls", repr=False)
    refresh_token: Optional[str] = Field(None, description="Token used to obtain a new access token", repr=False)
    expires_at: Optional[datetime] = Field(None, description="Access token expiry")
    identity: Identity = Field(..., description="Identity the tokens were issued to")


@dataclass
class CachedSession:
    """Session cache entry: a verified identity and when it was stored."""

    identity: Identity
    cached_at: float


class SignUpRequest(BaseModel):
    """Request body for POST /auth/signup."""

    email: str = Field(..., min_length=3, description="Account email")
    password: str = Field(..., min_length=6, description="Account password", repr=False)


class SignInRequest(BaseModel):
    """Request body for POST /auth/signin."""

    email: str = Field(..., min_length=3, description="Account email")
    password: str = Field(..., min_length=1, description="Account password", repr=False)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /auth/reset-password."""

    email: str = Field(..., min_length=3, description="Account email")
    redirect_to: Optional[str] = Field(
        None,
        alias="redirectTo",
        description="URL the reset link should return to",
    )

    model_config = {"populate_by_name": True}


class SessionResponse(BaseModel):
    """Tokens and identity returned by sign-in and sign-up."""

    success: bool = True
    user: dict = Field(..., description="Public identity fields")
    session: Optional[dict] = Field(None, description="Access/refresh token pair")
    message: Optional[str] = Field(None, description="Informational message")

    @classmethod
    def from_session(cls, session: AuthSession, message: Optional[str] = None) -> "SessionResponse":
        """Response carrying the token pair so the client can store it."""
        return cls(
            user=session.identity.public_dict(),
            session={
                "access_token": session.access_token,
                "refresh_token": session.refresh_token,
                "expires_at": int(session.expires_at.timestamp()) if session.expires_at else None,
            },
            message=message,
        )
