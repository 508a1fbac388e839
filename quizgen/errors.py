"""Typed errors raised by the quiz generation pipeline.

Every failure the pipeline can produce is a subclass of
``QuizGenerationError``. Each error carries a stable machine-readable
``code``, a user-facing ``message``, optional diagnostic ``data`` and a
``retryable`` flag used by the model client's retry loop.
"""

from typing import Any, Dict, Optional


class QuizGenerationError(Exception):
    """Base class for all quiz generation failures.

    Attributes:
        code: Stable error code (e.g. "rate_limited", "json_error")
        message: Human-readable error message
        data: Optional diagnostic payload
        retryable: Whether retrying the same input may succeed
    """

    code = "generation_error"
    retryable = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        """Initialize the error.

        Args:
            message: Human-readable error message
            code: Override for the class-level error code
            data: Optional diagnostic payload
        """
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.data: Dict[str, Any] = data or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "data": self.data,
        }


class ConfigurationError(QuizGenerationError):
    """A required setting (typically the API key) is missing."""

    code = "no_api_key"


class ContentError(QuizGenerationError):
    """Source content is empty, too short, or not meaningful text."""

    code = "empty_content"


class RateLimitError(QuizGenerationError):
    """The requester exceeded the local hourly generation ceiling."""

    code = "rate_limited"

    def __init__(self, limit: int, requester_id: Optional[str] = None):
        self.limit = limit
        self.requester_id = requester_id
        super().__init__(
            f"AI generation limit reached ({limit} requests per hour). "
            "Please wait and try again later.",
            data={"limit": limit},
        )


class RateLimitStoreError(QuizGenerationError):
    """The rate-limit counter store could not be updated."""

    code = "rate_limit_store_error"


class ModelError(QuizGenerationError):
    """Base class for failures talking to the model completion endpoint."""

    code = "api_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        self.status_code = status_code
        super().__init__(message, code=code, data=data)


class ModelConnectionError(ModelError):
    """Connection-level failure reaching the model endpoint."""

    code = "api_connection_error"
    retryable = True


class ModelTimeoutError(ModelError):
    """The model endpoint did not answer within the timeout."""

    code = "api_timeout"
    retryable = True


class ModelServerError(ModelError):
    """The model endpoint returned a 5xx status."""

    code = "api_server_error"
    retryable = True


class AuthError(ModelError):
    """The API key was rejected (HTTP 401)."""

    code = "invalid_key"


class ProviderRateLimitError(ModelError):
    """The provider throttled the request (HTTP 429)."""

    code = "provider_rate_limited"


class ModelAPIError(ModelError):
    """The provider reported an error in the response envelope."""

    code = "api_error"


class InvalidResponseError(ModelError):
    """A 200 response carried no ``choices[0].message.content``."""

    code = "invalid_response"


class ParseError(QuizGenerationError):
    """The model output could not be turned into a question list."""

    code = "json_error"


class QuestionValidationError(QuizGenerationError):
    """No question in the batch passed structural validation."""

    code = "no_valid_questions"
