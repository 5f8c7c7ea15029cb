"""Limits for the on-demand BrickLink part validation surface."""

from __future__ import annotations

from dataclasses import dataclass

from .env import positive_int_env, positive_number_env

DEFAULT_WINDOW_MS = 60_000
DEFAULT_PER_CALLER_MAX_HITS = 60
DEFAULT_GLOBAL_MAX_HITS = 600
DEFAULT_CHECK_TIMEOUT_SECONDS = 10.0
DEFAULT_EXISTENCE_CACHE_SIZE = 5_000
DEFAULT_EXISTENCE_CACHE_TTL_SECONDS = 6 * 60 * 60.0


@dataclass(frozen=True, slots=True)
class ValidationConfig:
    window_ms: int = DEFAULT_WINDOW_MS
    per_caller_max_hits: int = DEFAULT_PER_CALLER_MAX_HITS
    global_max_hits: int = DEFAULT_GLOBAL_MAX_HITS
    check_timeout_seconds: float = DEFAULT_CHECK_TIMEOUT_SECONDS
    existence_cache_size: int = DEFAULT_EXISTENCE_CACHE_SIZE
    existence_cache_ttl_seconds: float = DEFAULT_EXISTENCE_CACHE_TTL_SECONDS


def get_validation_config() -> ValidationConfig:
    """Read validation limits; invalid or non-positive values use the defaults."""

    return ValidationConfig(
        window_ms=positive_int_env("BL_RATE_WINDOW_MS", DEFAULT_WINDOW_MS),
        per_caller_max_hits=positive_int_env(
            "BL_RATE_LIMIT_PER_MINUTE", DEFAULT_PER_CALLER_MAX_HITS
        ),
        global_max_hits=positive_int_env(
            "BL_GLOBAL_RATE_LIMIT_PER_MINUTE", DEFAULT_GLOBAL_MAX_HITS
        ),
        check_timeout_seconds=positive_number_env(
            "BL_VALIDATE_TIMEOUT_SECONDS", DEFAULT_CHECK_TIMEOUT_SECONDS
        ),
        existence_cache_size=positive_int_env(
            "BL_EXISTENCE_CACHE_SIZE", DEFAULT_EXISTENCE_CACHE_SIZE
        ),
        existence_cache_ttl_seconds=positive_number_env(
            "BL_EXISTENCE_CACHE_TTL_SECONDS", DEFAULT_EXISTENCE_CACHE_TTL_SECONDS
        ),
    )
