"""Where listingsync keeps its database and HTTP cache."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "listingsync"
DEFAULT_DB_FILENAME: Final[str] = "listingsync.db"
HTTP_CACHE_FILENAME: Final[str] = "gbp_http_cache.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path

    def _base(self, *, ensure: bool) -> Path:
        base = self.data_dir.expanduser().resolve()
        if ensure:
            base.mkdir(parents=True, exist_ok=True)
        return base

    def resolve_data_dir(self) -> Path:
        return self._base(ensure=False)

    def database_path(self, *, ensure: bool = True) -> Path:
        return self._base(ensure=ensure) / DEFAULT_DB_FILENAME

    def http_cache_path(self, *, ensure: bool = True) -> Path:
        return self._base(ensure=ensure) / HTTP_CACHE_FILENAME


def _default_data_dir() -> Path:
    base = os.getenv("XDG_DATA_HOME")
    base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return base_path / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("LISTINGSYNC_DATA_DIR")
    return StorageConfig(data_dir=Path(env_dir) if env_dir else _default_data_dir())


def get_database_uri() -> str:
    """``DATABASE_URI`` when set, else a sqlite file in the data directory."""

    env_uri = os.getenv("DATABASE_URI")
    if env_uri:
        return env_uri
    return f"sqlite+pysqlite:///{get_storage_config().database_path()}"


def get_http_cache_path() -> Path:
    return get_storage_config().http_cache_path()
