"""
Tests for the application exception hierarchy and the API exception handler.
"""

from unittest.mock import MagicMock

import pytest
from rest_framework.exceptions import NotAuthenticated

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from core.views import api_exception_handler


class TestBaseApplicationError:
    def test_defaults(self):
        error = BaseApplicationError("Something went wrong")

        assert error.message == "Something went wrong"
        assert error.error_code == "APPLICATION_ERROR"
        assert error.details == {}
        assert error.http_status == 400
        assert str(error) == "[APPLICATION_ERROR] Something went wrong"

    def test_to_dict_includes_details_only_when_present(self):
        assert NotFoundError("Refund rfnd_1 not found").to_dict() == {
            "error": "Refund rfnd_1 not found",
            "error_code": "NOT_FOUND",
        }
        assert ValidationError("bad", details={"amount": 0}).to_dict()["details"] == {"amount": 0}

    def test_custom_error_code(self):
        assert ConflictError("dup", error_code="DUPLICATE").error_code == "DUPLICATE"

    def test_repr(self):
        assert repr(NotFoundError("gone")) == (
            "NotFoundError(message='gone', error_code='NOT_FOUND', details={})"
        )

    @pytest.mark.parametrize(
        "exc_class,status_code",
        [(ValidationError, 400), (NotFoundError, 404), (ConflictError, 409), (ExternalServiceError, 502)],
    )
    def test_http_status(self, exc_class, status_code):
        assert exc_class("x").http_status == status_code

    def test_external_service_name_in_details(self):
        error = ExternalServiceError("timeout", service_name="payment_gateway")

        assert error.details == {"service": "payment_gateway"}
        assert error.is_retryable is False


class TestApiExceptionHandler:
    def context(self):
        return {"view": MagicMock(), "request": MagicMock()}

    def test_drf_exceptions_rendered_by_drf(self):
        response = api_exception_handler(NotAuthenticated(), self.context())

        assert response.status_code == 401

    def test_application_error(self):
        response = api_exception_handler(NotFoundError("gone", details={"id": 1}), self.context())

        assert response.status_code == 404
        assert response.data == {"error": "gone", "error_code": "NOT_FOUND", "details": {"id": 1}}

    def test_unexpected_error_hides_details(self):
        response = api_exception_handler(RuntimeError("postgres://secret@db"), self.context())

        assert response.status_code == 500
        assert response.data == {"error": "Internal server error", "error_code": "INTERNAL_ERROR"}
