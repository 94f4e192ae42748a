"""TTL cache for the page-scraped session token."""

import asyncio
import time
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class TokenCache(Generic[T]):
    """Single-value cache that expires after a fixed lifetime.

    The async lock lets callers refresh the token once while concurrent
    lookups wait for the result.
    """

    def __init__(self, ttl: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        """Initialize the cache.

        Args:
            ttl: Lifetime of a stored token in seconds.
            clock: Monotonic time source.
        """
        self._ttl = ttl
        self._clock = clock
        self._value: T | None = None
        self._expires_at: float = 0
        self._lock = asyncio.Lock()

    def get(self) -> T | None:
        """Get the token if it is set and still fresh."""
        if self._value is not None and self._clock() < self._expires_at:
            return self._value
        return None

    def set(self, value: T) -> None:
        """Store a token, restarting its lifetime."""
        self._value = value
        self._expires_at = self._clock() + self._ttl

    def invalidate(self) -> None:
        """Forget the token, e.g. after the server rejected it."""
        self._value = None
        self._expires_at = 0

    @property
    def lock(self) -> asyncio.Lock:
        """Lock held while a token is being refreshed."""
        return self._lock
