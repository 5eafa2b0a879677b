"""Tests for shared/exceptions.py."""

import pytest

from shared.exceptions import (
    AuthenticationError,
    AuthorizationError,
    CrateMatchError,
    ExternalServiceError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)


class TestCrateMatchError:
    def test_defaults_code_to_class_name(self):
        error = CrateMatchError("Something broke")
        assert error.code == "CrateMatchError"
        assert error.status_code == 500
        assert error.details == {}
        assert str(error) == "Something broke"

    def test_to_dict_flattens_details(self):
        error = CrateMatchError("Nope", code="NOPE", details={"limit": 1})
        assert error.to_dict() == {"error": "NOPE", "message": "Nope", "limit": 1}

    def test_no_extra_headers_by_default(self):
        assert CrateMatchError("x").headers is None


class TestStatusCodes:
    @pytest.mark.parametrize(
        "cls,status",
        [
            (NotFoundError, 404),
            (ValidationError, 400),
            (AuthenticationError, 401),
            (AuthorizationError, 403),
            (RateLimitError, 429),
        ],
    )
    def test_status_code(self, cls, status):
        error = cls("message")
        assert error.status_code == status
        assert isinstance(error, CrateMatchError)

    def test_authentication_error_asks_for_bearer(self):
        assert AuthenticationError("x").headers == {"WWW-Authenticate": "Bearer"}


class TestExternalServiceError:
    def test_records_service(self):
        error = ExternalServiceError("Down", service="supabase-auth", code="AUTH_ERROR")
        assert error.service == "supabase-auth"
        assert error.code == "AUTH_ERROR"
        assert error.status_code == 500
