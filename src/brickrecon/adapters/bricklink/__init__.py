"""BrickLink Store API adapter."""

from __future__ import annotations

from .client import BrickLinkAPIError, BrickLinkClient, should_cache_payload
from .oauth import BrickLinkOAuth

__all__ = ["BrickLinkAPIError", "BrickLinkClient", "BrickLinkOAuth", "should_cache_payload"]
