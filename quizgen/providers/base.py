"""Base class for chat-completion model clients.

A model client turns a compiled prompt into raw model text. The retry
policy lives here as an explicit per-attempt state machine::

    IDLE -> REQUESTING -> SUCCESS
                       -> RETRYABLE_FAILURE -> (sleep) -> REQUESTING ...
                       -> FATAL_FAILURE

Subclasses only implement a single attempt (``send_request``).
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from ..error_classifier import category_of
from ..errors import ModelError
from ..generation.prompts import CompiledPrompt
from ..metrics import GenerationMetrics, get_metrics_tracker
from ..models import TokenUsage

logger = logging.getLogger(__name__)


class AttemptState(Enum):
    """States of a single completion attempt."""

    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    FATAL_FAILURE = "fatal_failure"


TERMINAL_STATES = frozenset(
    {
        AttemptState.SUCCESS,
        AttemptState.RETRYABLE_FAILURE,
        AttemptState.FATAL_FAILURE,
    }
)


@dataclass(frozen=True)
class ModelResponse:
    """Raw model text plus the usage reported for it."""

    content: str
    token_usage: TokenUsage
    attempts: int = 1


@dataclass
class AttemptOutcome:
    """Result of one attempt: a response or the error that ended it."""

    number: int
    state: AttemptState = AttemptState.IDLE
    response: Optional[ModelResponse] = None
    error: Optional[ModelError] = None

    def transition(self, state: AttemptState) -> None:
        """Move to ``state``; terminal states cannot be left."""
        if self.state in TERMINAL_STATES:
            raise RuntimeError(
                f"Attempt {self.number} already finished in state {self.state.value}"
            )
        self.state = state

    def succeed(self, response: ModelResponse) -> None:
        self.transition(AttemptState.SUCCESS)
        self.response = response

    def fail(self, error: ModelError) -> None:
        self.transition(
            AttemptState.RETRYABLE_FAILURE
            if error.retryable
            else AttemptState.FATAL_FAILURE
        )
        self.error = error


class BaseModelClient(ABC):
    """Abstract base class for chat-completion clients with bounded retry."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_retries: int = 2,
        retry_delay: float = 5.0,
        sleep: Optional[Callable[[float], None]] = None,
        metrics: Optional[GenerationMetrics] = None,
    ):
        """
        Initialize the model client.

        Args:
            api_key: API key for the provider
            model: Model identifier to use
            max_retries: Additional attempts after the first retryable failure
            retry_delay: Fixed delay between attempts in seconds
            sleep: Sleep function, injectable for tests (default: time.sleep)
            metrics: Metrics tracker (default: global tracker)
        """
        self.api_key = api_key
        self.model = model
        self.max_retries = max(0, max_retries)
        self.retry_delay = retry_delay
        self._sleep = sleep or time.sleep
        self._metrics = metrics or get_metrics_tracker()
        self.attempt_log: List[AttemptOutcome] = []

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_retries

    @abstractmethod
    def send_request(self, prompt: CompiledPrompt) -> ModelResponse:
        """
        Perform exactly one completion request.

        Args:
            prompt: System and user messages

        Returns:
            ModelResponse with the raw model text

        Raises:
            ModelError: Classified failure of this attempt
        """
        pass

    def get_provider_name(self) -> str:
        """
        Get the name of this provider.

        Returns:
            Provider name (e.g., "openai")
        """
        return self.__class__.__name__.replace("Client", "").lower()

    def invoke(self, prompt: CompiledPrompt) -> ModelResponse:
        """
        Run the completion with the retry policy.

        Stops on the first success or the first fatal failure. After the
        last attempt fails with a retryable error, that error is raised.

        Args:
            prompt: System and user messages

        Returns:
            ModelResponse from the successful attempt

        Raises:
            ModelError: The fatal error, or the last retryable error
        """
        self.attempt_log = []
        last_error: Optional[ModelError] = None

        for number in range(1, self.max_attempts + 1):
            if number > 1:
                self._metrics.record_retry()
                logger.info(
                    f"Retrying {self.get_provider_name()} request in "
                    f"{self.retry_delay}s (attempt {number}/{self.max_attempts})",
                    extra={"attempt": number, "model": self.model},
                )
                self._sleep(self.retry_delay)

            outcome = self._run_attempt(number, prompt)
            self.attempt_log.append(outcome)

            if outcome.state == AttemptState.SUCCESS:
                assert outcome.response is not None
                return ModelResponse(
                    content=outcome.response.content,
                    token_usage=outcome.response.token_usage,
                    attempts=number,
                )

            last_error = outcome.error
            if outcome.state == AttemptState.FATAL_FAILURE:
                assert last_error is not None
                raise last_error

        self._metrics.record_retries_exhausted()
        logger.error(
            f"{self.get_provider_name()} request failed after "
            f"{self.max_attempts} attempts: {last_error}",
            extra={"model": self.model},
        )
        assert last_error is not None
        raise last_error

    def _run_attempt(self, number: int, prompt: CompiledPrompt) -> AttemptOutcome:
        outcome = AttemptOutcome(number=number)
        outcome.transition(AttemptState.REQUESTING)
        self._metrics.record_api_attempt()

        try:
            outcome.succeed(self.send_request(prompt))
        except ModelError as e:
            outcome.fail(e)
            log = logger.warning if e.retryable else logger.error
            log(
                f"Attempt {number} failed ({category_of(e).value}): {e.message}",
                extra={
                    "attempt": number,
                    "model": self.model,
                    "error_code": e.code,
                    "status_code": e.status_code,
                },
            )

        return outcome
