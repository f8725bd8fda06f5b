"""Process-local keyed cache with per-entry TTL, shared by geocoding and weather lookups."""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache")


@dataclass
class CacheEntry:
    """Cached value and the monotonic time at which it stops being served."""
    value: Any
    expires_at: float


class KeyedCache:
    """Thread-safe, TTL-aware in-memory store with an optional size bound."""

    def __init__(self, max_entries: int | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the cache; ``max_entries`` of None means TTL is the only eviction."""
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key`` or None; expired entries are dropped on sight."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                self._entries.pop(key, None)
                return None
            self._entries.move_to_end(key)
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store ``value`` for ``ttl_seconds``; a non-positive TTL stores nothing."""
        if ttl_seconds <= 0:
            return
        entry = CacheEntry(value=value, expires_at=self._clock() + ttl_seconds)
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug("Evicted %s (max_entries=%d)", evicted, self.max_entries)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
