"""
Counter stores for rate limiter state.

Provides an abstract interface and implementations for the per-requester
request counters. A counter is created with a TTL on its first increment;
later increments never extend it, which gives a fixed (not sliding) window.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from ..errors import RateLimitStoreError

logger = logging.getLogger(__name__)


class CounterStore(ABC):
    """
    Abstract counter store.

    Implementations must make ``increment`` atomic: concurrent callers for
    the same key each observe a distinct count.
    """

    @abstractmethod
    def increment(self, key: str, ttl: int) -> int:
        """
        Increment a counter, creating it with ``ttl`` if absent.

        Args:
            key: Counter key
            ttl: Time-to-live in seconds, applied only when the key is created

        Returns:
            The counter value after incrementing
        """
        pass

    @abstractmethod
    def get(self, key: str) -> int:
        """
        Get the current value of a counter.

        Args:
            key: Counter key

        Returns:
            Current count, or 0 if absent or expired
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Delete a counter.

        Args:
            key: Counter key to delete
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all counters."""
        pass


class InMemoryCounterStore(CounterStore):
    """
    In-memory counter store.

    Uses dictionaries with TTL support via expiration timestamps and
    periodically drops expired entries.

    Thread-safe with locks for concurrent access.

    Note: Data is lost on process restart. For multiple workers, use
    RedisCounterStore.
    """

    def __init__(
        self,
        cleanup_interval: int = 60,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize in-memory store.

        Args:
            cleanup_interval: How often to clean up expired entries (seconds)
            clock: Time source returning seconds, injectable for tests
                (default: time.time)
        """
        self._clock = clock or time.time
        self._counts: Dict[str, int] = {}
        self._expiry: Dict[str, float] = {}
        self._lock = threading.RLock()
        self._cleanup_interval = cleanup_interval
        self._last_cleanup = self._clock()

    def _is_expired(self, key: str, now: float) -> bool:
        return key in self._expiry and now >= self._expiry[key]

    def _evict(self, key: str) -> None:
        self._counts.pop(key, None)
        self._expiry.pop(key, None)

    def increment(self, key: str, ttl: int) -> int:
        """Increment a counter, starting a new window if absent or expired."""
        with self._lock:
            now = self._clock()
            self._maybe_cleanup(now)

            if self._is_expired(key, now):
                self._evict(key)

            if key not in self._counts:
                self._counts[key] = 0
                self._expiry[key] = now + ttl

            self._counts[key] += 1
            return self._counts[key]

    def get(self, key: str) -> int:
        """Get a counter value, returning 0 if expired or not found."""
        with self._lock:
            now = self._clock()
            self._maybe_cleanup(now)

            if self._is_expired(key, now):
                self._evict(key)
                return 0

            return self._counts.get(key, 0)

    def ttl(self, key: str) -> Optional[float]:
        """Seconds until the counter's window resets, or None if absent."""
        with self._lock:
            now = self._clock()
            if key not in self._counts or self._is_expired(key, now):
                return None
            return self._expiry[key] - now

    def delete(self, key: str) -> None:
        """Delete a counter."""
        with self._lock:
            self._evict(key)

    def clear(self) -> None:
        """Clear all counters."""
        with self._lock:
            self._counts.clear()
            self._expiry.clear()

    def _maybe_cleanup(self, now: float) -> None:
        """Drop expired entries if the cleanup interval has passed."""
        if now - self._last_cleanup < self._cleanup_interval:
            return

        self._last_cleanup = now
        expired_keys = [key for key, expiry in self._expiry.items() if now >= expiry]
        for key in expired_keys:
            self._evict(key)

        if expired_keys:
            logger.debug(f"Cleaned up {len(expired_keys)} expired rate-limit counters")

    def get_stats(self) -> dict:
        """
        Get store statistics (for monitoring/debugging).

        Returns:
            Dict with keys: total_keys, expired_keys, active_keys
        """
        with self._lock:
            now = self._clock()
            expired_count = sum(1 for expiry in self._expiry.values() if now >= expiry)

            return {
                "total_keys": len(self._counts),
                "expired_keys": expired_count,
                "active_keys": len(self._counts) - expired_count,
            }


class RedisCounterStore(CounterStore):
    """
    Redis counter store for rate limiting.

    Shares counters across workers and servers. Requires the redis-py
    package (optional dependency, ``pip install quizgen[redis]``).

    Counters are incremented with ``INCR`` and given their TTL with
    ``EXPIRE ... NX`` in the same transaction, so the window is set exactly
    once when the key is created. Keys are namespaced to avoid collisions
    with other Redis data.
    """

    # Key prefix to namespace counters in Redis
    KEY_PREFIX = "quizgen:ratelimit:"

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        key_prefix: Optional[str] = None,
        connection_pool_size: int = 10,
        socket_timeout: float = 5.0,
        socket_connect_timeout: float = 5.0,
        retry_on_timeout: bool = True,
    ):
        """
        Initialize Redis store with connection pooling.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379/0
                       or redis://:password@host:port/db)
            key_prefix: Optional custom prefix for counter keys
            connection_pool_size: Maximum number of connections in the pool
            socket_timeout: Timeout for socket operations in seconds
            socket_connect_timeout: Timeout for socket connections in seconds
            retry_on_timeout: Whether to retry on timeout errors

        Raises:
            ImportError: If redis-py is not installed
        """
        try:
            import redis  # type: ignore[import-untyped]
        except ImportError:
            raise ImportError(
                "redis-py is required for RedisCounterStore. "
                "Install it with: pip install redis"
            )

        self._key_prefix = key_prefix or self.KEY_PREFIX

        self._pool = redis.ConnectionPool.from_url(
            redis_url,
            max_connections=connection_pool_size,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_connect_timeout,
            retry_on_timeout=retry_on_timeout,
        )
        self._redis = redis.Redis(connection_pool=self._pool)

        # Test connection on startup
        try:
            self._redis.ping()
            logger.info("Successfully connected to Redis for rate limiting")
        except redis.ConnectionError as e:
            logger.warning(
                f"Could not connect to Redis on startup: {e}. "
                "Rate limiting will fail until Redis is available."
            )

    def _make_key(self, key: str) -> str:
        """Create a namespaced key to avoid collisions."""
        return f"{self._key_prefix}{key}"

    def increment(self, key: str, ttl: int) -> int:
        """
        Atomically increment a counter in Redis.

        Raises:
            RateLimitStoreError: If Redis fails; the request that was
                already served cannot be counted
        """
        import redis  # type: ignore[import-untyped]

        full_key = self._make_key(key)
        try:
            pipe = self._redis.pipeline(transaction=True)
            pipe.incr(full_key)
            pipe.expire(full_key, ttl, nx=True)
            count, _ = pipe.execute()
            return int(count)
        except redis.RedisError as e:
            logger.error(f"Redis error during increment({key}): {e}")
            raise RateLimitStoreError(
                "Could not update the AI generation usage counter.",
                data={"key": key},
            ) from e

    def get(self, key: str) -> int:
        """
        Get a counter value from Redis.

        Returns:
            Current count, or 0 if not found or on error
        """
        import redis  # type: ignore[import-untyped]

        try:
            value = self._redis.get(self._make_key(key))
            if value is None:
                return 0
            return int(value)
        except redis.RedisError as e:
            logger.error(f"Redis error during get({key}): {e}")
            return 0
        except ValueError as e:
            logger.error(f"Non-integer counter value for {key}: {e}")
            return 0

    def delete(self, key: str) -> None:
        """Delete a counter from Redis."""
        import redis  # type: ignore[import-untyped]

        try:
            self._redis.delete(self._make_key(key))
        except redis.RedisError as e:
            logger.error(f"Redis error during delete({key}): {e}")

    def clear(self) -> None:
        """
        Clear all rate-limit counters.

        Only clears keys with the counter prefix, not the entire database.
        """
        import redis  # type: ignore[import-untyped]

        try:
            pattern = f"{self._key_prefix}*"
            cursor: int = 0
            while True:
                cursor, keys = self._redis.scan(cursor, match=pattern, count=100)
                if keys:
                    self._redis.delete(*keys)
                if cursor == 0:
                    break
        except redis.RedisError as e:
            logger.error(f"Redis error during clear(): {e}")

    def is_connected(self) -> bool:
        """
        Check if the Redis connection is healthy.

        Returns:
            True if connected and responsive, False otherwise
        """
        import redis  # type: ignore[import-untyped]

        try:
            self._redis.ping()
            return True
        except redis.RedisError:
            return False

    def close(self) -> None:
        """Close the connection pool."""
        self._pool.disconnect()
