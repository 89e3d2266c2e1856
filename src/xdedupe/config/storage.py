"""Where xdedupe keeps its SQLite database, and how to override it."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_var

APP_DIR_NAME: Final[str] = "xdedupe"
DEFAULT_DB_FILENAME: Final[str] = "xdedupe.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """An absolute data directory plus the database file inside it."""

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def sqlite_uri(self) -> str:
        """Create the data directory if needed and point SQLite at the database file."""

        self.data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{self.data_dir / self.database_filename}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def _platform_data_home() -> Path:
    if os.name == "nt":
        return Path(os.getenv("LOCALAPPDATA") or Path.home() / "AppData" / "Local")
    return Path(os.getenv("XDG_DATA_HOME") or Path.home() / ".local" / "share")


def get_storage_config() -> StorageConfig:
    """Data directory from ``XDEDUPE_DATA_DIR``, else the per-user platform location."""

    override = optional_env_var("XDEDUPE_DATA_DIR")
    base = Path(override) if override else _platform_data_home() / APP_DIR_NAME
    return StorageConfig(data_dir=base.expanduser().resolve())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise the SQLite file in the data directory."""

    uri = optional_env_var("DATABASE_URI")
    if uri is None:
        uri = (storage or get_storage_config()).sqlite_uri()
    return DatabaseConfig(uri=uri)


def get_database_uri() -> str:
    return get_database_config().uri
