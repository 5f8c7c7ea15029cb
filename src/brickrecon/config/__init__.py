"""Application configuration helpers."""

from __future__ import annotations

from .bricklink import BrickLinkConfig, get_bricklink_config
from .env import require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .validation import ValidationConfig, get_validation_config

__all__ = [
    "BrickLinkConfig",
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "ValidationConfig",
    "configure_logging",
    "get_bricklink_config",
    "get_database_config",
    "get_storage_config",
    "get_validation_config",
    "require_env_var",
    "require_env_vars",
]
