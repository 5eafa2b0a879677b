"""
Authentication module exceptions.

These exceptions are raised by the auth module and can be caught
by API error handlers to return appropriate HTTP responses.
"""

from shared.exceptions import AuthenticationError, ExternalServiceError, ValidationError


class MissingTokenError(AuthenticationError):
    """Raised when no authentication token is provided."""

    def __init__(self, message: str = "Please sign in to continue"):
        super().__init__(message, code="MISSING_TOKEN")


class InvalidTokenError(AuthenticationError):
    """Raised when the auth provider rejects a token."""

    def __init__(self, message: str = "Please sign in again"):
        super().__init__(message, code="INVALID_TOKEN")


class ExpiredTokenError(AuthenticationError):
    """Raised when a token has expired and could not be refreshed."""

    def __init__(self, message: str = "Your session has expired. Please sign in again"):
        super().__init__(message, code="TOKEN_EXPIRED")


class AuthCredentialsError(AuthenticationError):
    """Raised when sign-in credentials are rejected."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message, code="INVALID_CREDENTIALS")


class UserExistsError(ValidationError):
    """Raised when signing up with an email that is already registered."""

    def __init__(self, email: str):
        super().__init__(
            "An account with this email already exists. Please sign in instead.",
            code="USER_EXISTS",
            details={"email": email},
        )


class AuthProviderUnavailableError(ExternalServiceError):
    """Raised when the auth provider cannot be reached or fails unexpectedly."""

    def __init__(self, message: str = "Internal server error during authentication"):
        super().__init__(message, service="supabase-auth", code="AUTH_ERROR")
