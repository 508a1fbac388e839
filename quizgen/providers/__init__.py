"""Chat-completion model clients."""

from .base import AttemptOutcome, AttemptState, BaseModelClient, ModelResponse
from .openai_provider import OpenAIClient, mask_api_key

__all__ = [
    "AttemptOutcome",
    "AttemptState",
    "BaseModelClient",
    "ModelResponse",
    "OpenAIClient",
    "mask_api_key",
]
