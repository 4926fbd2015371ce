"""
Smoke tests for the SQLDriver against a temporary SQLite database.
"""
from __future__ import annotations

import pytest

from accounts.core.config import SQLStoreConfig
from accounts.domain.errors import (
    BackendUnavailable,
    DuplicateUsernameError,
    SnapshotNotFoundError,
    UserNotFoundError,
)
from accounts.domain.models import AuditLogEntry
from accounts.repositories.sql_repository import SQLDriver
from conftest import make_user


@pytest.fixture()
def temp_db(tmp_path):
    """SQLite temporario com teardown completo para nao deixar o arquivo bloqueado no Windows."""
    db_file = tmp_path / "test.db"
    drv = SQLDriver(SQLStoreConfig(url=f"sqlite:///{db_file}"))
    drv.bootstrap()
    yield drv
    drv.close()


def test_user_crud(temp_db):
    temp_db.insert(make_user("alice", profile={"lang": "en"}))
    with pytest.raises(DuplicateUsernameError):
        temp_db.insert(make_user("alice"))
    user = temp_db.find_by_username("alice")
    assert user is not None
    assert user.profile == {"lang": "en"}

    updated = temp_db.update("alice", {"role": "admin"})
    assert updated.role == "admin"
    assert temp_db.find_by_username("alice").role == "admin"

    temp_db.delete("alice")
    assert temp_db.find_by_username("alice") is None
    with pytest.raises(UserNotFoundError):
        temp_db.delete("alice")
    with pytest.raises(UserNotFoundError):
        temp_db.update("alice", {"role": "user"})


def test_save_replaces_collection(temp_db):
    temp_db.insert(make_user("old"))
    temp_db.save([make_user("alice"), make_user("bob")])
    assert sorted(u.username for u in temp_db.load()) == ["alice", "bob"]


def test_snapshots_and_audit(temp_db):
    temp_db.insert(make_user("alice"))
    snap = temp_db.write_snapshot("update", temp_db.load())
    assert snap.location.startswith("snapshot:")
    assert snap.record_count == 1
    assert [s.location for s in temp_db.list_snapshots()] == [snap.location]
    assert [u.username for u in temp_db.read_snapshot(snap.location)] == ["alice"]
    with pytest.raises(SnapshotNotFoundError):
        temp_db.read_snapshot("snapshot:999")

    temp_db.append_audit(AuditLogEntry(timestamp="t1", action="register", username="alice", details={"role": "user"}))
    temp_db.append_audit(AuditLogEntry(timestamp="t2", action="delete", username="alice"))
    entries = temp_db.read_audit()
    assert [e.action for e in entries] == ["register", "delete"]
    assert entries[0].details == {"role": "user"}


def test_unreachable_database(tmp_path):
    drv = SQLDriver(SQLStoreConfig(url=f"sqlite:///{tmp_path / 'missing' / 'nested' / 'x.db'}"))
    with pytest.raises(BackendUnavailable):
        drv.bootstrap()


def test_use_before_bootstrap_is_unavailable(tmp_path):
    drv = SQLDriver(SQLStoreConfig(url=f"sqlite:///{tmp_path / 'x.db'}"))
    with pytest.raises(BackendUnavailable):
        drv.load()
