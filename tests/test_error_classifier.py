"""Tests for completion API error classification."""

import httpx
import pytest

from quizgen.error_classifier import (
    ErrorCategory,
    categorize_status,
    category_of,
    classify_exception,
    classify_response,
)
from quizgen.errors import (
    AuthError,
    ModelAPIError,
    ModelConnectionError,
    ModelServerError,
    ModelTimeoutError,
    ProviderRateLimitError,
)


class TestClassifyResponse:
    """Tests for classify_response()."""

    def test_success_without_envelope_is_not_an_error(self):
        """Test that a clean 200 is not classified as an error."""
        assert classify_response(200, {"choices": []}) is None
        assert classify_response(200, None) is None

    def test_unauthorized(self):
        """Test that 401 maps to AuthError."""
        error = classify_response(401, {"error": {"message": "bad key"}})

        assert isinstance(error, AuthError)
        assert error.code == "invalid_key"
        assert error.retryable is False

    def test_too_many_requests(self):
        """Test that 429 maps to ProviderRateLimitError."""
        error = classify_response(429)

        assert isinstance(error, ProviderRateLimitError)
        assert error.retryable is False

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_server_errors_are_retryable(self, status):
        """Test that 5xx statuses are retryable server errors."""
        error = classify_response(status)

        assert isinstance(error, ModelServerError)
        assert error.retryable is True
        assert error.status_code == status
        assert str(status) in error.message

    def test_envelope_message_used_for_other_statuses(self):
        """Test that the provider's message is surfaced for other failures."""
        error = classify_response(400, {"error": {"message": "Unsupported parameter"}})

        assert isinstance(error, ModelAPIError)
        assert error.message == "API Error: Unsupported parameter"

    def test_unknown_status_without_envelope(self):
        """Test that an unexplained status still produces an API error."""
        error = classify_response(418, None)

        assert isinstance(error, ModelAPIError)
        assert "418" in error.message

    def test_envelope_on_success_status(self):
        """Test that an error object in a 200 body is an API error."""
        error = classify_response(200, {"error": {"message": "quota"}})

        assert isinstance(error, ModelAPIError)
        assert error.status_code == 200


class TestClassifyException:
    """Tests for classify_exception()."""

    @pytest.mark.parametrize(
        "exc",
        [
            httpx.ReadTimeout("timed out"),
            httpx.ConnectTimeout("timed out"),
            httpx.PoolTimeout("timed out"),
        ],
    )
    def test_timeouts(self, exc):
        """Test that httpx timeouts map to retryable ModelTimeoutError."""
        error = classify_exception(exc)

        assert isinstance(error, ModelTimeoutError)
        assert error.retryable is True
        assert "fewer questions" in error.message

    def test_connection_errors(self):
        """Test that other transport errors map to ModelConnectionError."""
        error = classify_exception(httpx.ConnectError("connection refused"))

        assert isinstance(error, ModelConnectionError)
        assert error.code == "api_connection_error"
        assert error.retryable is True
        assert error.data["original_error"] == "ConnectError"


class TestCategories:
    """Tests for category helpers."""

    def test_categorize_status(self):
        """Test status code categorization."""
        assert categorize_status(401) == ErrorCategory.AUTHENTICATION
        assert categorize_status(429) == ErrorCategory.RATE_LIMIT
        assert categorize_status(503) == ErrorCategory.SERVER_ERROR
        assert categorize_status(400, {"error": "bad"}) == ErrorCategory.API_ERROR
        assert categorize_status(400) == ErrorCategory.UNKNOWN

    def test_category_of(self):
        """Test reverse lookup from error to category."""
        assert category_of(AuthError("x")) == ErrorCategory.AUTHENTICATION
        assert category_of(ModelTimeoutError("x")) == ErrorCategory.TIMEOUT
        assert category_of(ModelAPIError("x")) == ErrorCategory.API_ERROR
