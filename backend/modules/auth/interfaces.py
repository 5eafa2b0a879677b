"""
Authentication module interface.

Other modules should depend on IAuthProvider, not the concrete implementation.
This enables testing with fakes and swapping the identity provider.
"""

from typing import Optional, Protocol, runtime_checkable

from shared.models import Identity

from .models import AuthSession


@runtime_checkable
class IAuthProvider(Protocol):
    """
    Interface to the external identity provider.

    Implementations translate provider rejections into InvalidTokenError or
    AuthCredentialsError, and every other failure into
    AuthProviderUnavailableError so callers know what is worth retrying.
    """

    async def verify_token(self, token: str) -> Identity:
        """
        Verify an access token and return the identity it belongs to.

        Raises:
            InvalidTokenError: The provider rejected the token
            AuthProviderUnavailableError: The provider could not be reached
        """
        ...

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        """Exchange a refresh token for a new token pair."""
        ...

    async def sign_up(self, email: str, password: str) -> Optional[AuthSession]:
        """
        Register a new account.

        Returns the new session, or None when the provider requires email
        confirmation before issuing tokens.

        Raises:
            UserExistsError: The email is already registered
        """
        ...

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Sign in with email and password."""
        ...

    async def sign_out(self, token: str) -> None:
        """Revoke the session behind an access token."""
        ...

    async def reset_password(self, email: str, redirect_to: Optional[str] = None) -> None:
        """Send a password reset email."""
        ...
