"""In-process LRU cache with optional per-entry expiry.

One instance is meant to be shared by every request in the process, so all
operations take the instance lock. Expired entries are evicted lazily when
``get``/``has`` touches them; there is no background sweep.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable


@dataclass(slots=True)
class CacheEntry[V]:
    value: V
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now > self.expires_at


class LRUCache[K: Hashable, V]:
    """Least-recently-used cache; ``get`` refreshes recency, ``set`` evicts one entry."""

    def __init__(
        self,
        max_size: int,
        *,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("LRUCache max_size must be at least 1")
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("LRUCache ttl_seconds must be positive")
        self._entries: OrderedDict[K, CacheEntry[V]] = OrderedDict()
        self._max_size = max_size
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.RLock()

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, key: K) -> V | None:
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def get_entry(self, key: K) -> CacheEntry[V] | None:
        """Like ``get`` but distinguishes a cached ``None`` from a miss."""

        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return None
            self._entries.move_to_end(key)
            return entry

    def has(self, key: K) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]

    def set(self, key: K, value: V, *, ttl_seconds: float | None = None) -> None:
        """Insert ``value``; ``ttl_seconds`` overrides the cache default for this entry."""

        ttl = ttl_seconds if ttl_seconds is not None else self._ttl_seconds
        expires_at = self._clock() + ttl if ttl is not None else None
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self._max_size:
                self._entries.popitem(last=False)
            self._entries[key] = CacheEntry(value=value, expires_at=expires_at)

    def delete(self, key: K) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def entries(self) -> list[tuple[K, V]]:
        """Snapshot of unexpired entries, oldest first. Does not evict or reorder."""

        now = self._clock()
        with self._lock:
            return [
                (key, entry.value)
                for key, entry in self._entries.items()
                if not entry.is_expired(now)
            ]

    def values(self) -> list[V]:
        return [value for _key, value in self.entries()]

    def _live_entry(self, key: K) -> CacheEntry[V] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry
