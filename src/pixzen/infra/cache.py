"""Process-local read-through cache with a fixed TTL.

Each component owns its own instance (AI config, message templates); there
is no cross-instance invalidation besides an explicit clear().
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Generic, TypeVar

V = TypeVar("V")

DEFAULT_TTL_SECONDS = 5 * 60


class TTLCache(Generic[V]):
    """Read-through cache keyed by string.

    Args:
        ttl_seconds: Lifetime of an entry after it is loaded.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, V]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> V | None:
        """Return the cached value, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: V) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self._ttl, value)

    def get_or_load(self, key: str, loader: Callable[[], V | None]) -> V | None:
        """Return the cached value or call loader and cache its result.

        None results are not cached, so a missing row is looked up again on
        the next call. Loader exceptions propagate to the caller.
        """
        value = self.get(key)
        if value is not None:
            return value

        value = loader()
        if value is not None:
            self.set(key, value)
        return value

    def clear(self) -> None:
        """Drop every entry (admin cache invalidation)."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
