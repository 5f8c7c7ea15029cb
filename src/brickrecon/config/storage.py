"""Location of the catalog database.

``DATABASE_URI`` wins outright. Otherwise the catalog lives in a SQLite file
under ``BRICKRECON_DATA_DIR`` or the platform's per-user data directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "brickrecon"
DATABASE_FILENAME: Final[str] = "catalog.db"
DATA_DIR_ENV: Final[str] = "BRICKRECON_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path

    @property
    def database_path(self) -> Path:
        return self.data_dir.expanduser().resolve() / DATABASE_FILENAME

    def sqlite_uri(self) -> str:
        """URI of the catalog file; creates the data directory so SQLite can open it."""

        path = self.database_path
        path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{path}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def _platform_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        return Path(base) if base else Path.home() / "AppData" / "Local"
    base = os.getenv("XDG_DATA_HOME")
    return Path(base) if base else Path.home() / ".local" / "share"


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv(DATA_DIR_ENV)
    data_dir = Path(env_dir) if env_dir else _platform_data_dir() / APP_DIR_NAME
    return StorageConfig(data_dir=data_dir)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    env_uri = (os.getenv(DATABASE_URI_ENV) or "").strip()
    if env_uri:
        return DatabaseConfig(uri=env_uri)
    return DatabaseConfig(uri=(storage or get_storage_config()).sqlite_uri())
