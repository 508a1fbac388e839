"""Metrics tracking for the question generation pipeline.

This module keeps in-process counters for generation requests, model
attempts and retries, failures by error code, validation outcomes and
token usage. Counters are process-local; export them through
``get_summary()``.
"""

import logging
import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .models import TokenUsage

logger = logging.getLogger(__name__)


class GenerationMetrics:
    """Tracks metrics for question generation runs.

    All record methods are thread-safe.
    """

    def __init__(self):
        """Initialize metrics tracker."""
        self._lock = threading.Lock()
        self.reset()
        logger.debug("GenerationMetrics initialized")

    def reset(self) -> None:
        """Reset all metrics to initial state."""
        with self._lock:
            self.started_at = datetime.now(timezone.utc)

            # Request metrics
            self.requests = 0
            self.successes = 0
            self.partial_successes = 0
            self.failures = 0
            self.failures_by_code: Dict[str, int] = defaultdict(int)

            # Model API metrics
            self.api_attempts = 0
            self.retries = 0
            self.retries_exhausted = 0

            # Validation metrics
            self.questions_generated = 0
            self.questions_valid = 0
            self.questions_invalid = 0

            # Token usage
            self.prompt_tokens = 0
            self.completion_tokens = 0
            self.total_tokens = 0

    def record_request(self) -> None:
        """Record the start of a generation request."""
        with self._lock:
            self.requests += 1

    def record_success(self, partial: bool = False) -> None:
        """Record a request that produced at least one valid question."""
        with self._lock:
            self.successes += 1
            if partial:
                self.partial_successes += 1

    def record_failure(self, code: str) -> None:
        """Record a failed request by error code."""
        with self._lock:
            self.failures += 1
            self.failures_by_code[code] += 1

    def record_api_attempt(self) -> None:
        """Record one HTTP attempt against the model endpoint."""
        with self._lock:
            self.api_attempts += 1

    def record_retry(self) -> None:
        """Record that a retryable failure triggered another attempt."""
        with self._lock:
            self.retries += 1

    def record_retries_exhausted(self) -> None:
        """Record that every attempt failed with a retryable error."""
        with self._lock:
            self.retries_exhausted += 1

    def record_validation(self, total: int, valid: int, invalid: int) -> None:
        """Record the outcome of validating one batch."""
        with self._lock:
            self.questions_generated += total
            self.questions_valid += valid
            self.questions_invalid += invalid

    def record_token_usage(self, usage: TokenUsage) -> None:
        """Accumulate provider-reported token usage."""
        with self._lock:
            self.prompt_tokens += usage.prompt_tokens
            self.completion_tokens += usage.completion_tokens
            self.total_tokens += usage.total_tokens

    def get_summary(self) -> Dict[str, Any]:
        """Generate a metrics summary.

        Returns:
            Dictionary with request, api, validation and token sections
        """
        with self._lock:
            validity_rate = (
                self.questions_valid / self.questions_generated
                if self.questions_generated > 0
                else 0.0
            )
            return {
                "started_at": self.started_at.isoformat(),
                "requests": {
                    "total": self.requests,
                    "successes": self.successes,
                    "partial_successes": self.partial_successes,
                    "failures": self.failures,
                    "failures_by_code": dict(self.failures_by_code),
                },
                "api": {
                    "attempts": self.api_attempts,
                    "retries": self.retries,
                    "retries_exhausted": self.retries_exhausted,
                },
                "validation": {
                    "questions_generated": self.questions_generated,
                    "questions_valid": self.questions_valid,
                    "questions_invalid": self.questions_invalid,
                    "validity_rate": round(validity_rate, 4),
                },
                "tokens": {
                    "prompt_tokens": self.prompt_tokens,
                    "completion_tokens": self.completion_tokens,
                    "total_tokens": self.total_tokens,
                },
            }


# Global metrics tracker instance
_metrics_tracker: Optional[GenerationMetrics] = None


def get_metrics_tracker() -> GenerationMetrics:
    """Get the global metrics tracker instance.

    Returns:
        Global GenerationMetrics instance
    """
    global _metrics_tracker

    if _metrics_tracker is None:
        _metrics_tracker = GenerationMetrics()

    return _metrics_tracker


def reset_metrics_tracker() -> None:
    """Reset the global metrics tracker."""
    global _metrics_tracker

    if _metrics_tracker is not None:
        _metrics_tracker.reset()
