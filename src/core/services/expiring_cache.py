"""In-memory cache whose entries expire after a fixed time-to-live.

Expiry is lazy: an entry older than the TTL is dropped the next time it is
looked up. There is no background eviction and no capacity bound; entries are
naturally superseded by re-querying. Each public method runs inside a single
lock so the cache can be shared by concurrent operations and threads.

Values are deep-copied on the way in and on the way out: a caller mutating a
value it inserted or looked up never changes what later lookups return.
"""

from __future__ import annotations

import copy
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    timestamp: float


class ExpiringCache:
    def __init__(self, ttl: float = 120.0, *, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def insert(self, key: str, value: Any) -> None:
        entry = CacheEntry(key=key, value=copy.deepcopy(value), timestamp=self._clock())
        with self._lock:
            self._entries[key] = entry

    def lookup(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or expired."""

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.timestamp >= self.ttl:
                del self._entries[key]
                return None
            value = entry.value
        return copy.deepcopy(value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
