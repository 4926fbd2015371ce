"""
File driver tests against a temporary directory.
"""
from __future__ import annotations

import json
from datetime import date

import pytest

from accounts.core.config import FileStoreConfig
from accounts.domain.errors import (
    BackendUnavailable,
    DuplicateUsernameError,
    SnapshotNotFoundError,
    UserNotFoundError,
)
from accounts.domain.models import AuditLogEntry
from accounts.repositories.json_storage import JsonFileDriver
from conftest import make_user


@pytest.fixture()
def driver(tmp_path):
    drv = JsonFileDriver(FileStoreConfig(data_dir=tmp_path / "store"))
    drv.bootstrap()
    return drv


def test_bootstrap_is_idempotent(tmp_path):
    drv = JsonFileDriver(FileStoreConfig(data_dir=tmp_path / "store"))
    drv.bootstrap()
    drv.bootstrap()
    assert (tmp_path / "store" / "backups").is_dir()
    assert drv.load() == []


def test_crud_roundtrip(driver):
    driver.insert(make_user("alice", profile={"lang": "en"}))
    driver.insert(make_user("bob", role="admin"))
    with pytest.raises(DuplicateUsernameError):
        driver.insert(make_user("alice"))

    updated = driver.update("alice", {"role": "admin", "profile": {"theme": "dark"}})
    assert updated.role == "admin"
    assert updated.profile == {"lang": "en", "theme": "dark"}
    assert driver.find_by_username("alice") == updated
    assert driver.find_by_username("Alice") is None

    driver.delete("bob")
    assert [u.username for u in driver.load()] == ["alice"]
    with pytest.raises(UserNotFoundError):
        driver.delete("bob")
    with pytest.raises(UserNotFoundError):
        driver.update("bob", {"role": "user"})


def test_users_file_is_a_json_array_without_leftover_temp(driver):
    driver.save([make_user("alice"), make_user("bob")])
    users_path = driver.config.users_path
    data = json.loads(users_path.read_text(encoding="utf-8"))
    assert [u["username"] for u in data] == ["alice", "bob"]
    assert not users_path.with_name(users_path.name + ".tmp").exists()


def test_snapshots_are_listed_oldest_first(driver):
    driver.insert(make_user("alice"))
    first = driver.write_snapshot("add", driver.load())
    second = driver.write_snapshot("delete", [])
    listed = driver.list_snapshots()
    assert [s.location for s in listed] == [first.location, second.location]
    assert [s.operation_type for s in listed] == ["add", "delete"]
    assert [u.username for u in driver.read_snapshot(first.location)] == ["alice"]
    with pytest.raises(SnapshotNotFoundError):
        driver.read_snapshot(str(driver.config.data_dir / "users.json"))


def test_audit_is_line_delimited_and_skips_garbage(driver):
    driver.append_audit(AuditLogEntry(timestamp="t1", action="register", username="alice"))
    with driver.config.audit_log_path.open("a", encoding="utf-8") as f:
        f.write("{not json\n")
    driver.append_audit(AuditLogEntry(timestamp="t2", action="login", username="alice", performed_by="alice"))
    entries = driver.read_audit()
    assert [e.action for e in entries] == ["register", "login"]
    assert entries[1].performed_by == "alice"


def test_unreachable_directory_raises_backend_unavailable(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    drv = JsonFileDriver(FileStoreConfig(data_dir=blocker / "store"))
    with pytest.raises(BackendUnavailable):
        drv.bootstrap()


def test_corrupt_users_file_raises_backend_unavailable(driver):
    driver.config.users_path.write_text("{broken", encoding="utf-8")
    with pytest.raises(BackendUnavailable):
        driver.load()


def test_user_record_without_username_raises_backend_unavailable(driver):
    driver.config.users_path.write_text('[{"role": "user"}]', encoding="utf-8")
    with pytest.raises(BackendUnavailable):
        driver.load()
    driver.config.users_path.write_text('{"users": "nope"}', encoding="utf-8")
    with pytest.raises(BackendUnavailable):
        driver.find_by_username("alice")


def test_snapshot_with_wrong_shape_raises_backend_unavailable(driver):
    stray = driver.config.backup_dir / "users-backup-x.json"
    stray.write_text("[]", encoding="utf-8")
    with pytest.raises(BackendUnavailable):
        driver.list_snapshots()
    with pytest.raises(BackendUnavailable):
        driver.read_snapshot(str(stray))


def test_audit_line_that_is_not_an_object_is_skipped(driver):
    driver.config.audit_log_path.write_text("[1, 2]\n", encoding="utf-8")
    driver.append_audit(AuditLogEntry(timestamp="t1", action="register", username="alice"))
    assert [e.action for e in driver.read_audit()] == ["register"]


def test_unserializable_record_leaves_no_temp_file(driver):
    driver.insert(make_user("alice"))
    with pytest.raises(BackendUnavailable):
        driver.update("alice", {"profile": {"since": date(2024, 1, 1)}})
    users_path = driver.config.users_path
    assert not users_path.with_name(users_path.name + ".tmp").exists()
    assert driver.find_by_username("alice").profile == {}
