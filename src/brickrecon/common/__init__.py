"""Process-wide services shared across requests."""

from __future__ import annotations

from .cache import CacheEntry, LRUCache
from .rate_limit import (
    LocalRateLimitTable,
    RateLimitBucket,
    RateLimiter,
    RateLimitResult,
    SharedRateLimitBackend,
)

__all__ = [
    "CacheEntry",
    "LRUCache",
    "LocalRateLimitTable",
    "RateLimitBucket",
    "RateLimitResult",
    "RateLimiter",
    "SharedRateLimitBackend",
]
