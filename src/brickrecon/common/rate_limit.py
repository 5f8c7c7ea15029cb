"""Fixed-window rate limiting with a shared backend and a process-local fallback."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)

DEFAULT_WINDOW_MS: Final[int] = 60_000
DEFAULT_MAX_HITS: Final[int] = 60
# Expired buckets are swept once the local table grows past this size
LOCAL_SWEEP_THRESHOLD: Final[int] = 10_000


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    allowed: bool
    retry_after_seconds: int = 0


@runtime_checkable
class SharedRateLimitBackend(Protocol):
    """Atomic increment-and-compare against a counter shared by all workers."""

    def consume(self, key: str, *, window_ms: int, max_hits: int) -> RateLimitResult: ...


@dataclass(slots=True)
class RateLimitBucket:
    key: str
    count: int
    window_started_at: float

    def expired(self, now_ms: float, window_ms: int) -> bool:
        return now_ms > self.window_started_at + window_ms


def _now_ms() -> float:
    return time.time() * 1000.0


def retry_after_seconds(window_started_at: float, window_ms: int, now_ms: float) -> int:
    remaining_ms = window_started_at + window_ms - now_ms
    return max(1, math.ceil(remaining_ms / 1000.0))


def _coerce_positive(value: int, fallback: int) -> int:
    return value if value > 0 else fallback


class LocalRateLimitTable:
    """Process-wide fixed-window counters used while the shared backend is down."""

    def __init__(self) -> None:
        self._buckets: dict[str, RateLimitBucket] = {}
        self._lock = threading.Lock()

    def consume(self, key: str, *, window_ms: int, max_hits: int, now_ms: float) -> RateLimitResult:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket.expired(now_ms, window_ms):
                bucket = RateLimitBucket(key=key, count=0, window_started_at=now_ms)
                self._buckets[key] = bucket
                if len(self._buckets) > LOCAL_SWEEP_THRESHOLD:
                    self._sweep(now_ms, window_ms)

            if bucket.count >= max_hits:
                return RateLimitResult(
                    allowed=False,
                    retry_after_seconds=retry_after_seconds(
                        bucket.window_started_at, window_ms, now_ms
                    ),
                )
            bucket.count += 1
            return RateLimitResult(allowed=True)

    def bucket(self, key: str) -> RateLimitBucket | None:
        with self._lock:
            return self._buckets.get(key)

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()

    def _sweep(self, now_ms: float, window_ms: int) -> None:
        stale = [key for key, bucket in self._buckets.items() if bucket.expired(now_ms, window_ms)]
        for key in stale:
            del self._buckets[key]


class RateLimiter:
    """Consume hits against ``backend``; degrade to local counters when it fails.

    A per-process limit is weaker than the distributed one, but the caller is
    never failed open nor failed hard because the shared store is unreachable.
    """

    def __init__(
        self,
        backend: SharedRateLimitBackend | None = None,
        *,
        local: LocalRateLimitTable | None = None,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        self._backend = backend
        self._local = local or LocalRateLimitTable()
        self._clock = clock

    @property
    def local(self) -> LocalRateLimitTable:
        return self._local

    def consume(
        self,
        key: str,
        *,
        window_ms: int = DEFAULT_WINDOW_MS,
        max_hits: int = DEFAULT_MAX_HITS,
    ) -> RateLimitResult:
        window_ms = _coerce_positive(window_ms, DEFAULT_WINDOW_MS)
        max_hits = _coerce_positive(max_hits, DEFAULT_MAX_HITS)

        if self._backend is not None:
            try:
                return self._backend.consume(key, window_ms=window_ms, max_hits=max_hits)
            except Exception as exc:  # noqa: BLE001
                log.warning(
                    "Shared rate limit backend failed for key=%s, using local fallback: %s",
                    key,
                    exc,
                )

        return self._local.consume(
            key, window_ms=window_ms, max_hits=max_hits, now_ms=self._clock()
        )
