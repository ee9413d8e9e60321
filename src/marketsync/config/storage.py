"""Data storage configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_bool, env_str

APP_DIR_NAME: Final[str] = "marketsync"
DEFAULT_DB_FILENAME: Final[str] = "marketsync.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def ensure_data_dir(self) -> Path:
        data_dir = self.data_dir.expanduser().resolve()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.ensure_data_dir() / self.database_filename}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False


@dataclass(frozen=True, slots=True)
class RedisConfig:
    """``url=None`` selects the in-process tally store and logging publisher."""

    url: str | None = None
    key_prefix: str = "marketsync"


def _default_data_dir() -> Path:
    base = os.getenv("XDG_DATA_HOME")
    base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = env_str("MARKETSYNC_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    return StorageConfig(data_dir=data_dir)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    env_uri = env_str("DATABASE_URI")
    echo = env_bool("DATABASE_ECHO", False)
    if env_uri:
        return DatabaseConfig(uri=env_uri, echo=echo)
    storage_config = storage or get_storage_config()
    return DatabaseConfig(uri=storage_config.database_uri(), echo=echo)


def get_redis_config() -> RedisConfig:
    return RedisConfig(
        url=env_str("REDIS_URL"),
        key_prefix=env_str("REDIS_KEY_PREFIX", "marketsync") or "marketsync",
    )
