"""BrickLink Store API configuration values."""

from __future__ import annotations

from dataclasses import dataclass, field

from .env import first_env_var, require_env_vars
from .errors import MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, ShouldCacheHook

BRICKLINK_BASE_URL = "https://api.bricklink.com/api/store/v1"
BRICKLINK_TIMEOUT_SECONDS = 20.0
# BrickLink allows 5000 calls a day per token; stay well below bursts
BRICKLINK_CALLS_PER_SECOND = 4

TOKEN_SECRET_ENV_NAMES = ("BRICKLINK_TOKEN_SECRET", "BRICLINK_TOKEN_SECRET")


@dataclass(frozen=True)
class BrickLinkConfig:
    """OAuth 1.0a credentials and transport settings for the Store API."""

    consumer_key: str
    consumer_secret: str
    token_value: str
    token_secret: str
    resilience: ResilienceConfig = field(default_factory=lambda: default_resilience_config())


def default_resilience_config(
    *,
    cache_predicate: ShouldCacheHook | None = None,
) -> ResilienceConfig:
    return ResilienceConfig(
        name="bricklink",
        base_url=BRICKLINK_BASE_URL,
        timeout_seconds=BRICKLINK_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=BRICKLINK_CALLS_PER_SECOND, per_seconds=1.0),
        cache=CacheConfig(should_cache=cache_predicate),
        default_headers={"Accept": "application/json"},
    )


def get_bricklink_config(
    *,
    resilience: ResilienceConfig | None = None,
    cache_predicate: ShouldCacheHook | None = None,
) -> BrickLinkConfig:
    values = require_env_vars(
        ("BRICKLINK_CONSUMER_KEY", "BRICKLINK_CONSUMER_SECRET", "BRICKLINK_TOKEN_VALUE")
    )
    token_secret = first_env_var(TOKEN_SECRET_ENV_NAMES)
    if token_secret is None:
        primary, *aliases = TOKEN_SECRET_ENV_NAMES
        raise MissingConfigurationError([primary], alias_hint="or " + ", ".join(aliases))
    return BrickLinkConfig(
        consumer_key=values["BRICKLINK_CONSUMER_KEY"],
        consumer_secret=values["BRICKLINK_CONSUMER_SECRET"],
        token_value=values["BRICKLINK_TOKEN_VALUE"],
        token_secret=token_secret,
        resilience=resilience or default_resilience_config(cache_predicate=cache_predicate),
    )
