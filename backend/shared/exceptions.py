"""
Base exception classes for the CrateMatch backend.

Each module defines its own exceptions that inherit from these bases.
Every exception knows the HTTP status it maps to, so the API layer can
render any of them with a single handler.
"""

from typing import Optional, Any


class CrateMatchError(Exception):
    """
    Base exception for all CrateMatch errors.

    All custom exceptions should inherit from this class.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    @property
    def headers(self) -> Optional[dict[str, str]]:
        """Extra response headers for this error, if any."""
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            **self.details,
        }


class NotFoundError(CrateMatchError):
    """Resource not found."""

    status_code = 404


class ValidationError(CrateMatchError):
    """Input validation failed."""

    status_code = 400


class AuthenticationError(CrateMatchError):
    """Authentication failed (invalid or missing credentials)."""

    status_code = 401

    @property
    def headers(self) -> Optional[dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class AuthorizationError(CrateMatchError):
    """Authorization failed (insufficient permissions)."""

    status_code = 403


class RateLimitError(CrateMatchError):
    """Caller exceeded a request or usage budget."""

    status_code = 429


class ExternalServiceError(CrateMatchError):
    """Error communicating with an external service."""

    def __init__(
        self,
        message: str,
        service: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
        self.service = service
