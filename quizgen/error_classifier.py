"""Error classification for chat-completion API failures.

This module maps transport exceptions, HTTP status codes and response
envelopes from the completion endpoint to typed ``ModelError`` subclasses,
so the model client's retry loop only has to look at ``retryable``.
"""

from enum import Enum
from typing import Any, Mapping, Optional

import httpx

from .errors import (
    AuthError,
    ModelAPIError,
    ModelConnectionError,
    ModelError,
    ModelServerError,
    ModelTimeoutError,
    ProviderRateLimitError,
)

HTTP_STATUS_OK = 200
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_TOO_MANY_REQUESTS = 429
SERVER_ERROR_STATUSES = frozenset({500, 502, 503, 504})


class ErrorCategory(Enum):
    """Categories of completion API errors."""

    RATE_LIMIT = "rate_limit"  # Provider throttling (429)
    AUTHENTICATION = "authentication"  # API key rejected (401)
    SERVER_ERROR = "server_error"  # Provider server errors (5xx)
    NETWORK_ERROR = "network_error"  # Connection failures
    TIMEOUT = "timeout"  # No answer within the request timeout
    API_ERROR = "api_error"  # Error reported in the response envelope
    UNKNOWN = "unknown"  # Unclassified non-200 responses


# Category -> error class; only network, timeout and 5xx failures retry
CATEGORY_ERRORS = {
    ErrorCategory.RATE_LIMIT: ProviderRateLimitError,
    ErrorCategory.AUTHENTICATION: AuthError,
    ErrorCategory.SERVER_ERROR: ModelServerError,
    ErrorCategory.NETWORK_ERROR: ModelConnectionError,
    ErrorCategory.TIMEOUT: ModelTimeoutError,
    ErrorCategory.API_ERROR: ModelAPIError,
    ErrorCategory.UNKNOWN: ModelAPIError,
}


def categorize_status(
    status_code: int, body: Optional[Mapping[str, Any]] = None
) -> ErrorCategory:
    """Pick the error category for a non-200 response.

    Status codes win over the envelope: a 401 is an authentication failure
    even when the body also carries an ``error`` object.
    """
    if status_code == HTTP_STATUS_UNAUTHORIZED:
        return ErrorCategory.AUTHENTICATION
    if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
        return ErrorCategory.RATE_LIMIT
    if status_code in SERVER_ERROR_STATUSES:
        return ErrorCategory.SERVER_ERROR
    if _envelope_message(body):
        return ErrorCategory.API_ERROR
    return ErrorCategory.UNKNOWN


def _envelope_message(body: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not isinstance(body, Mapping):
        return None
    error = body.get("error")
    if isinstance(error, Mapping):
        message = error.get("message")
        return str(message) if message else "Unknown API error"
    if isinstance(error, str) and error:
        return error
    return None


def classify_response(
    status_code: int, body: Optional[Mapping[str, Any]] = None
) -> Optional[ModelError]:
    """Classify an HTTP response from the completion endpoint.

    Args:
        status_code: HTTP status of the response
        body: Decoded JSON body, or None if it was not JSON

    Returns:
        A ModelError for failed responses, or None when the response is a
        200 without an ``error`` envelope
    """
    envelope_message = _envelope_message(body)

    if status_code == HTTP_STATUS_OK:
        if envelope_message is None:
            return None
        return ModelAPIError(
            f"API Error: {envelope_message}", status_code=status_code
        )

    category = categorize_status(status_code, body)

    if category == ErrorCategory.AUTHENTICATION:
        message = "Invalid API key. Please check your API key in settings."
    elif category == ErrorCategory.RATE_LIMIT:
        message = "The AI provider rate limit was exceeded. Please try again later."
    elif category == ErrorCategory.SERVER_ERROR:
        message = (
            f"The AI service is temporarily unavailable (HTTP {status_code}). "
            "Please try again in a few moments."
        )
    elif category == ErrorCategory.API_ERROR:
        message = f"API Error: {envelope_message}"
    else:
        message = f"Unexpected response from the AI service (HTTP {status_code})."

    error_cls = CATEGORY_ERRORS[category]
    return error_cls(message, status_code=status_code)


def classify_exception(error: Exception) -> ModelError:
    """Classify a transport exception raised by httpx.

    Timeouts get a hint to reduce the request size, since long generations
    are the usual cause.

    Args:
        error: The exception raised while sending the request

    Returns:
        ModelTimeoutError or ModelConnectionError (both retryable)
    """
    if isinstance(error, httpx.TimeoutException):
        return ModelTimeoutError(
            "The AI service took too long to respond. Try using less content "
            "or generating fewer questions.",
            data={"original_error": type(error).__name__},
        )

    return ModelConnectionError(
        f"Failed to connect to the AI service: {error}",
        data={"original_error": type(error).__name__},
    )


def category_of(error: ModelError) -> ErrorCategory:
    """Reverse lookup of the category for an already-classified error."""
    for category, error_cls in CATEGORY_ERRORS.items():
        if type(error) is error_cls:
            return category
    return ErrorCategory.UNKNOWN
