"""Explicit time-to-live cache, injected where memoization is wanted."""

import logging
import threading
import time
from collections.abc import Callable, Hashable
from typing import Any

logger = logging.getLogger(__name__)


class TTLCache:
    """get-or-compute cache with per-entry expiry.

    A miss or eviction only costs latency: ``compute`` is a pure function of
    the key, so the cached and recomputed values are identical. Expired
    entries are swept on every write, and ``maxsize`` bounds the live entries
    by dropping the oldest writes first.
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        maxsize: int | None = None,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if maxsize is not None and maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self.maxsize = maxsize
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: Hashable, value: Any, ttl: float | None = None) -> None:
        now = self._clock()
        expires_at = now + (ttl if ttl is not None else self.ttl_seconds)
        with self._lock:
            self._sweep(now)
            self._entries.pop(key, None)
            self._entries[key] = (expires_at, value)
            if self.maxsize is not None:
                while len(self._entries) > self.maxsize:
                    del self._entries[next(iter(self._entries))]

    def _sweep(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any], ttl: float | None = None) -> Any:
        """Return the cached value, or compute, store and return it."""
        value = self.get(key)
        if value is not None:
            logger.debug("Cache hit for %s", key)
            return value
        value = compute()
        self.set(key, value, ttl)
        return value

    async def aget_or_compute(self, key: Hashable, compute, ttl: float | None = None) -> Any:
        """Async variant; ``compute`` is a coroutine function."""
        value = self.get(key)
        if value is not None:
            logger.debug("Cache hit for %s", key)
            return value
        value = await compute()
        self.set(key, value, ttl)
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for expires_at, _ in self._entries.values() if expires_at > now)
