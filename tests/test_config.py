from __future__ import annotations

from pathlib import Path

import pytest

from accounts.core import config as core_config
from accounts.core.config import (
    FileStoreConfig,
    SQLStoreConfig,
    StorageMode,
    backend_config_from_settings,
)


@pytest.fixture()
def clean_env(monkeypatch):
    for name in ("STORAGE_MODE", "DATABASE_URL", "DB_HOST", "DB_SSL", "PASSWORD_RESET_TTL"):
        monkeypatch.delenv(name, raising=False)
    core_config.get_settings.cache_clear()
    yield monkeypatch
    core_config.get_settings.cache_clear()


def test_mode_defaults_to_file(clean_env):
    assert core_config.get_settings().storage_mode is StorageMode.FILE


def test_database_url_selects_sql(clean_env):
    clean_env.setenv("DATABASE_URL", "sqlite:///x.db")
    assert core_config.get_settings().storage_mode is StorageMode.SQL


@pytest.mark.parametrize("raw,expected", [("web", StorageMode.SQL), ("desktop", StorageMode.FILE), ("SQL", StorageMode.SQL)])
def test_explicit_mode_aliases(clean_env, raw, expected):
    clean_env.setenv("STORAGE_MODE", raw)
    assert core_config.get_settings().storage_mode is expected


def test_bad_numbers_fall_back_to_defaults(clean_env):
    clean_env.setenv("PASSWORD_RESET_TTL", "soon")
    assert core_config.get_settings().password_reset_ttl == 1800


def test_file_store_paths(tmp_path):
    cfg = FileStoreConfig(data_dir=tmp_path)
    assert cfg.users_path == tmp_path / "users.json"
    assert cfg.audit_log_path == tmp_path / "audit_log.jsonl"
    assert cfg.backup_dir == tmp_path / "backups"


def test_sql_url_built_from_parts():
    url = SQLStoreConfig(host="db", port=6543, database="acc", user="svc", password="pw", ssl=True).sqlalchemy_url()
    assert url.drivername == "postgresql+psycopg"
    assert url.host == "db" and url.port == 6543 and url.database == "acc"
    assert url.query["sslmode"] == "require"


def test_explicit_url_wins():
    url = SQLStoreConfig(url="sqlite:///tmp.db", host="ignored").sqlalchemy_url()
    assert url.get_backend_name() == "sqlite"


def test_backend_config_from_settings(clean_env, tmp_path):
    clean_env.setenv("ACCOUNTS_DATA_DIR", str(tmp_path))
    clean_env.setenv("DATABASE_URL", "sqlite:///y.db")
    settings = core_config.get_settings()
    file_cfg = backend_config_from_settings(StorageMode.FILE, settings)
    sql_cfg = backend_config_from_settings(StorageMode.SQL, settings)
    assert isinstance(file_cfg, FileStoreConfig) and file_cfg.data_dir == Path(tmp_path)
    assert isinstance(sql_cfg, SQLStoreConfig) and sql_cfg.url == "sqlite:///y.db"
