"""SQLAlchemy adapter package for brickrecon."""

from __future__ import annotations

from .catalog import SqlAlchemyCatalogStore
from .engine import StartupError, configured_engine, is_started, shutdown, startup
from .rate_limit import SqlAlchemyRateLimitBackend

__all__ = [
    "SqlAlchemyCatalogStore",
    "SqlAlchemyRateLimitBackend",
    "StartupError",
    "configured_engine",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
]
