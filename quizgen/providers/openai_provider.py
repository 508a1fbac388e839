"""OpenAI chat-completions client for question generation."""

import logging
import re
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..error_classifier import classify_exception, classify_response
from ..errors import (
    ConfigurationError,
    InvalidResponseError,
    ModelAPIError,
    ModelError,
)
from ..generation.prompts import CompiledPrompt
from ..metrics import GenerationMetrics
from ..models import TokenUsage
from .base import BaseModelClient, ModelResponse

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4"
MODELS_TIMEOUT = 15.0
MAX_LISTED_MODELS = 10

# Model families that only accept the default sampling temperature
FIXED_TEMPERATURE_PATTERN = re.compile(r"^(gpt-5|o1|o3|o4)", re.IGNORECASE)

# Filters for list_models(): keep current general-purpose chat models only
LEGACY_MODEL_PATTERN = re.compile(r"^gpt-(3|4)")
SNAPSHOT_PATTERN = re.compile(r"-\d{4}")
SPECIALIZED_MODEL_PATTERN = re.compile(
    r"(audio|image|vision|realtime|transcribe|tts|whisper|dall|search|chatgpt)",
    re.IGNORECASE,
)
PREVIEW_PATTERN = re.compile(r"(preview|experimental)", re.IGNORECASE)
INSTRUCT_PATTERN = re.compile(r"-instruct$", re.IGNORECASE)


def supports_temperature(model: str) -> bool:
    """Whether the model accepts a custom ``temperature`` parameter."""
    return not FIXED_TEMPERATURE_PATTERN.match(model)


def is_listed_chat_model(model_id: str) -> bool:
    """Whether a model id from ``/models`` belongs in the model picker."""
    if not model_id.startswith("gpt-"):
        return False
    if LEGACY_MODEL_PATTERN.match(model_id):
        return False
    if SNAPSHOT_PATTERN.search(model_id):
        return False
    if SPECIALIZED_MODEL_PATTERN.search(model_id):
        return False
    if PREVIEW_PATTERN.search(model_id):
        return False
    if INSTRUCT_PATTERN.search(model_id):
        return False
    return True


def mask_api_key(api_key: str) -> str:
    """Mask an API key for display, keeping the first 7 and last 4 characters."""
    return f"{api_key[:7]}...{api_key[-4:]}"


class OpenAIClient(BaseModelClient):
    """OpenAI chat-completions integration over httpx."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 300.0,
        max_completion_tokens: int = 16000,
        temperature: float = 0.7,
        max_retries: int = 2,
        retry_delay: float = 5.0,
        sleep: Optional[Callable[[float], None]] = None,
        transport: Optional[httpx.BaseTransport] = None,
        metrics: Optional[GenerationMetrics] = None,
    ):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            model: Model to use (default: gpt-4)
            base_url: API base URL without trailing slash
            timeout: Per-attempt request timeout in seconds
            max_completion_tokens: Completion token ceiling
            temperature: Sampling temperature, omitted for models that
                reject it
            max_retries: Additional attempts after retryable failures
            retry_delay: Fixed delay between attempts in seconds
            sleep: Sleep function, injectable for tests
            transport: httpx transport, injectable for tests
            metrics: Metrics tracker (default: global tracker)
        """
        super().__init__(
            api_key,
            model,
            max_retries=max_retries,
            retry_delay=retry_delay,
            sleep=sleep,
            metrics=metrics,
        )
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_completion_tokens = max_completion_tokens
        self.temperature = temperature
        self._transport = transport

    def get_provider_name(self) -> str:
        return "openai"

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self, timeout: float) -> httpx.Client:
        return httpx.Client(timeout=timeout, transport=self._transport)

    def build_payload(self, prompt: CompiledPrompt) -> Dict[str, Any]:
        """
        Build the chat-completions request body.

        Args:
            prompt: System and user messages

        Returns:
            JSON-serializable request body
        """
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
            "max_completion_tokens": self.max_completion_tokens,
        }
        if supports_temperature(self.model):
            payload["temperature"] = self.temperature
        return payload

    def send_request(self, prompt: CompiledPrompt) -> ModelResponse:
        """
        Send one chat-completions request.

        Args:
            prompt: System and user messages

        Returns:
            ModelResponse with the first choice's message content

        Raises:
            ModelError: Classified transport, HTTP or envelope failure
        """
        url = f"{self.base_url}/chat/completions"

        try:
            with self._client(self.timeout) as client:
                response = client.post(
                    url,
                    json=self.build_payload(prompt),
                    headers=self._get_headers(),
                )
        except httpx.TransportError as e:
            raise classify_exception(e) from e

        body = _decode_json(response)

        error = classify_response(response.status_code, body)
        if error is not None:
            raise error

        content = _first_message_content(body)
        if content is None:
            raise InvalidResponseError(
                "Invalid response from the AI service.",
                status_code=response.status_code,
            )

        return ModelResponse(
            content=content,
            token_usage=TokenUsage.from_usage((body or {}).get("usage")),
        )

    def _get_models(self, api_key: str) -> httpx.Response:
        try:
            with self._client(MODELS_TIMEOUT) as client:
                return client.get(
                    f"{self.base_url}/models",
                    headers={"Authorization": f"Bearer {api_key}"},
                )
        except httpx.TransportError as e:
            raise classify_exception(e) from e

    def list_models(self) -> List[str]:
        """
        Fetch the current general-purpose chat models for this API key.

        Returns:
            Up to 10 sorted, de-duplicated model identifiers

        Raises:
            ConfigurationError: If no API key is configured
            ModelError: If the request fails or the response is malformed
        """
        if not self.api_key:
            raise ConfigurationError("API key is required.", code="no_api_key")

        response = self._get_models(self.api_key)
        if response.status_code != 200:
            raise ModelAPIError(
                "Failed to fetch models.", status_code=response.status_code
            )

        body = _decode_json(response)
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            raise InvalidResponseError(
                "Invalid response from the AI service.",
                status_code=response.status_code,
            )

        model_ids = {
            item["id"]
            for item in data
            if isinstance(item, dict)
            and isinstance(item.get("id"), str)
            and is_listed_chat_model(item["id"])
        }
        return sorted(model_ids)[:MAX_LISTED_MODELS]

    def validate_api_key(self, api_key: Optional[str] = None) -> bool:
        """
        Check an API key against the ``/models`` endpoint.

        Args:
            api_key: Key to validate (default: this client's key)

        Returns:
            True if the key is accepted

        Raises:
            ConfigurationError: If the key is empty
            AuthError: If the key is rejected (401)
            ProviderRateLimitError: If the provider throttles the check (429)
            ModelAPIError: For any other non-200 response
            ModelConnectionError: If the endpoint cannot be reached
        """
        key = self.api_key if api_key is None else api_key
        if not key:
            raise ConfigurationError("API key cannot be empty.", code="empty_key")

        try:
            response = self._get_models(key)
        except ModelError as e:
            logger.warning(f"API key validation could not reach the provider: {e}")
            raise

        if response.status_code == 200:
            logger.info(f"API key {mask_api_key(key)} validated")
            return True

        body = _decode_json(response)
        error = classify_response(response.status_code, body)
        if error is None or error.retryable:
            # Server errors during validation are reported, not retried
            error = ModelAPIError(
                error.message if error else "Unknown error occurred.",
                status_code=response.status_code,
            )
        raise error


def _decode_json(response: httpx.Response) -> Optional[Dict[str, Any]]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _first_message_content(body: Optional[Dict[str, Any]]) -> Optional[str]:
    if not body:
        return None
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not isinstance(content, str) or not content:
        return None
    return content
