from __future__ import annotations

import dataclasses
import sys
from pathlib import Path

import pytest

# Garante que o pacote accounts seja importavel durante os testes locais
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from accounts.core import config as core_config  # noqa: E402
from accounts.core.config import FileStoreConfig, SQLStoreConfig, StorageMode  # noqa: E402
from accounts.domain.models import User  # noqa: E402
from accounts.services.persistence import PersistenceAdapter  # noqa: E402

# Shaped like a real hash; adapter tests never verify it.
FAKE_HASH = "argon2$$argon2id$v=19$m=65536,t=3,p=4$c2FsdHNhbHQ$aGFzaGhhc2hoYXNo"


def make_user(username: str, role: str = "user", **kwargs) -> User:
    return User(username=username, password_hash=kwargs.pop("password_hash", FAKE_HASH), role=role, **kwargs)


@pytest.fixture()
def settings(tmp_path, monkeypatch):
    """Isolated environment: file mode under tmp_path, fresh settings cache."""
    monkeypatch.setenv("ACCOUNTS_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("STORAGE_MODE", "file")
    monkeypatch.delenv("DATABASE_URL", raising=False)
    core_config.get_settings.cache_clear()
    yield dataclasses.replace(core_config.get_settings(), max_login_attempts=3, lockout_seconds=600)
    core_config.get_settings.cache_clear()


def backend_config(mode: StorageMode, tmp_path: Path, name: str = "store"):
    if mode is StorageMode.FILE:
        return FileStoreConfig(data_dir=tmp_path / name)
    return SQLStoreConfig(url=f"sqlite:///{tmp_path / (name + '.db')}", export_dir=tmp_path / "exports")


@pytest.fixture(params=[StorageMode.FILE, StorageMode.SQL], ids=["file", "sql"])
def adapter(request, tmp_path, settings):
    instance = PersistenceAdapter(request.param, settings=settings)
    result = instance.initialize(backend_config(request.param, tmp_path))
    assert result.success, result.message
    yield instance
    instance.close()


@pytest.fixture()
def file_adapter(tmp_path, settings):
    instance = PersistenceAdapter(StorageMode.FILE, settings=settings)
    assert instance.initialize(backend_config(StorageMode.FILE, tmp_path)).success
    yield instance
    instance.close()
