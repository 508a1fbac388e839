"""Per-requester ceiling on AI generation calls.

``check`` gates a request before any network call and never mutates;
``increment`` is called only after the model call succeeded, so failed
calls are not charged against the requester.
"""

import logging
from typing import Optional

from ..config import settings
from ..errors import RateLimitError
from .storage import CounterStore, InMemoryCounterStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "quizgen_ai_requests_"


class GenerationRateLimiter:
    """Fixed-window request counter per requester.

    Attributes:
        limit: Maximum successful generations per window
        window: Window length in seconds
    """

    def __init__(
        self,
        store: Optional[CounterStore] = None,
        limit: Optional[int] = None,
        window: Optional[int] = None,
    ):
        """
        Initialize the rate limiter.

        Args:
            store: Counter store (default: a new InMemoryCounterStore)
            limit: Requests allowed per window (default: settings.rate_limit_per_hour)
            window: Window length in seconds (default: settings.rate_limit_window)
        """
        self.store = store or InMemoryCounterStore()
        self.limit = limit if limit is not None else settings.rate_limit_per_hour
        self.window = window if window is not None else settings.rate_limit_window

    @staticmethod
    def make_key(requester_id: str) -> str:
        return f"{KEY_PREFIX}{requester_id}"

    def check(self, requester_id: str) -> None:
        """
        Verify the requester is under the ceiling.

        Raises:
            RateLimitError: If the requester has used up the window
        """
        count = self.store.get(self.make_key(requester_id))
        if count >= self.limit:
            logger.warning(
                f"Rate limit reached for requester {requester_id} "
                f"({count}/{self.limit})",
                extra={"requester_id": requester_id},
            )
            raise RateLimitError(self.limit, requester_id=requester_id)

    def increment(self, requester_id: str) -> int:
        """
        Count one successful generation for the requester.

        The window starts with the first counted call and is not extended
        by later calls.

        Returns:
            The requester's count in the current window
        """
        count = self.store.increment(self.make_key(requester_id), self.window)
        logger.debug(
            f"Requester {requester_id} has used {count}/{self.limit} generations",
            extra={"requester_id": requester_id},
        )
        return count

    def remaining(self, requester_id: str) -> int:
        """Number of generations left in the requester's current window."""
        return max(0, self.limit - self.store.get(self.make_key(requester_id)))

    def reset(self, requester_id: str) -> None:
        """Forget the requester's counter."""
        self.store.delete(self.make_key(requester_id))
