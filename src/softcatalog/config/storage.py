"""Data storage configuration helpers.

Two SQLite stores live side by side in the data directory: the catalog store
holds shareable reference entries, the local store holds machine-specific
installation facts.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "softcatalog"
CATALOG_DB_FILENAME: Final[str] = "master_catalog.db"
LOCAL_DB_FILENAME: Final[str] = "ref.db"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    catalog_filename: str = CATALOG_DB_FILENAME
    local_filename: str = LOCAL_DB_FILENAME
    http_cache_filename: str = HTTP_CACHE_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def _base(self, *, ensure: bool) -> Path:
        return self.ensure_data_dir() if ensure else self.resolve_data_dir()

    def catalog_database_path(self, *, ensure: bool = True) -> Path:
        return self._base(ensure=ensure) / self.catalog_filename

    def local_database_path(self, *, ensure: bool = True) -> Path:
        return self._base(ensure=ensure) / self.local_filename

    def http_cache_path(self, *, ensure: bool = True) -> Path:
        return self._base(ensure=ensure) / self.http_cache_filename

    def catalog_database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.catalog_database_path()}"

    def local_database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.local_database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    catalog_uri: str
    local_uri: str


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("SOFTCATALOG_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    return StorageConfig(data_dir=data_dir)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    catalog_uri = os.getenv("CATALOG_DATABASE_URI")
    local_uri = os.getenv("LOCAL_DATABASE_URI")
    if catalog_uri and local_uri:
        return DatabaseConfig(catalog_uri=catalog_uri, local_uri=local_uri)
    storage_config = storage or get_storage_config()
    return DatabaseConfig(
        catalog_uri=catalog_uri or storage_config.catalog_database_uri(),
        local_uri=local_uri or storage_config.local_database_uri(),
    )
