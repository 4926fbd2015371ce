"""
Configuration helpers for the accounts core.

Settings are read once from the environment so that services and storage
drivers never fetch os.environ directly. Backend parameters are described by
two small dataclasses, one per storage mode.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional, Union
import os

from sqlalchemy.engine import URL, make_url


class StorageMode(str, Enum):
    """Which backend the persistence adapter drives."""

    FILE = "file"
    SQL = "sql"


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    storage_mode: StorageMode
    data_dir: Path
    database_url: str
    db_host: str
    db_port: int
    db_name: str
    db_user: str
    db_password: str
    db_ssl: bool
    db_connect_timeout: int
    password_reset_ttl: int
    max_login_attempts: int
    lockout_seconds: int
    log_level: str


@dataclass(frozen=True)
class FileStoreConfig:
    """Locations used by the file-backed driver."""

    data_dir: Path

    @property
    def users_path(self) -> Path:
        return self.data_dir / "users.json"

    @property
    def audit_log_path(self) -> Path:
        return self.data_dir / "audit_log.jsonl"

    @property
    def backup_dir(self) -> Path:
        return self.data_dir / "backups"

    @property
    def export_dir(self) -> Path:
        return self.data_dir / "exports"


@dataclass(frozen=True)
class SQLStoreConfig:
    """Connection parameters for the relational driver.

    ``url`` wins when present; otherwise a PostgreSQL URL is assembled from
    the individual parts.
    """

    url: Optional[str] = None
    host: str = "localhost"
    port: int = 5432
    database: str = "droptidy_db"
    user: str = "postgres"
    password: str = ""
    ssl: bool = False
    connect_timeout: int = 10
    export_dir: Optional[Path] = None

    def sqlalchemy_url(self) -> URL:
        if self.url:
            return make_url(self.url)
        query = {"sslmode": "require"} if self.ssl else {}
        return URL.create(
            "postgresql+psycopg",
            username=self.user,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.database,
            query=query,
        )


BackendConfig = Union[FileStoreConfig, SQLStoreConfig]


def _int(value: str | None, default: int = 0) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _mode(value: str | None, database_url: str) -> StorageMode:
    raw = (value or "").strip().lower()
    if raw in {"sql", "web", "postgres"}:
        return StorageMode.SQL
    if raw in {"file", "desktop", "electron"}:
        return StorageMode.FILE
    return StorageMode.SQL if database_url else StorageMode.FILE


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    database_url = (os.getenv("DATABASE_URL") or "").strip()
    data_dir = os.getenv("ACCOUNTS_DATA_DIR") or str(Path.home() / ".droptidy")
    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        storage_mode=_mode(os.getenv("STORAGE_MODE"), database_url),
        data_dir=Path(data_dir).expanduser(),
        database_url=database_url,
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=_int(os.getenv("DB_PORT", "5432"), 5432),
        db_name=os.getenv("DB_NAME", "droptidy_db"),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", ""),
        db_ssl=_bool(os.getenv("DB_SSL"), False),
        db_connect_timeout=_int(os.getenv("DB_CONNECT_TIMEOUT", "10"), 10),
        password_reset_ttl=_int(os.getenv("PASSWORD_RESET_TTL", "1800"), 1800),
        max_login_attempts=_int(os.getenv("MAX_LOGIN_ATTEMPTS", "5"), 5),
        lockout_seconds=_int(os.getenv("LOCKOUT_SECONDS", "900"), 900),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )


def backend_config_from_settings(mode: StorageMode, settings: Settings | None = None) -> BackendConfig:
    """Build the backend parameters for ``mode`` from the environment."""
    settings = settings or get_settings()
    if mode is StorageMode.FILE:
        return FileStoreConfig(data_dir=settings.data_dir)
    return SQLStoreConfig(
        url=settings.database_url or None,
        host=settings.db_host,
        port=settings.db_port,
        database=settings.db_name,
        user=settings.db_user,
        password=settings.db_password,
        ssl=settings.db_ssl,
        connect_timeout=settings.db_connect_timeout,
        export_dir=settings.data_dir / "exports",
    )
