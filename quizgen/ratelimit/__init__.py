"""Rate limiting for AI generation requests."""

from .limiter import GenerationRateLimiter
from .storage import CounterStore, InMemoryCounterStore, RedisCounterStore

__all__ = [
    "CounterStore",
    "GenerationRateLimiter",
    "InMemoryCounterStore",
    "RedisCounterStore",
]
