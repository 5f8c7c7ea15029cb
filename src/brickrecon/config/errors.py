"""Errors raised while reading configuration from the environment."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ConfigurationError(RuntimeError):
    """Raised when configuration values are invalid."""


class MissingConfigurationError(ConfigurationError):
    """Required environment variables are absent or blank; ``names`` lists them sorted."""

    def __init__(self, names: Iterable[str], *, alias_hint: str | None = None) -> None:
        self.names = tuple(sorted(names))
        message = f"Missing configuration for: {', '.join(self.names)}"
        if alias_hint:
            message = f"{message} ({alias_hint})"
        super().__init__(message)
