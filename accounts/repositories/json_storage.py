"""
File-backed storage driver.

Users live in one JSON document, the audit trail in a JSON-lines file and
snapshots as timestamped copies in a backup directory. Whole-document writes
go through a temporary file and ``os.replace``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional
import json
import logging
import os
import re

from accounts.core.config import FileStoreConfig
from accounts.domain.errors import (
    BackendUnavailable,
    DuplicateUsernameError,
    SnapshotNotFoundError,
    UserNotFoundError,
)
from accounts.domain.models import AuditLogEntry, BackupSnapshot, User
from .base import StorageDriver

logger = logging.getLogger(__name__)

_BACKUP_PREFIX = "users-backup-"


def _write_json(path: Path, data: Any) -> None:
    """Serialize before touching the disk; the temp file never outlives a failure."""
    content = json.dumps(data, ensure_ascii=False, indent=2)
    tmp = path.with_name(path.name + ".tmp")
    try:
        with tmp.open("w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise


def _read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _users_from(records: Any) -> list[User]:
    if not isinstance(records, list):
        raise TypeError(f"expected a list of users, got {type(records).__name__}")
    return [User.from_dict(r) for r in records]


# Raised by from_dict/get on well-formed JSON with the wrong shape.
_CORRUPT = (ValueError, KeyError, TypeError, AttributeError)


class JsonFileDriver(StorageDriver):
    mode = "file"

    def __init__(self, config: FileStoreConfig):
        self.config = config
        self.export_dir = config.export_dir

    # -------------------------- helpers --------------------------
    def _unavailable(self, what: str, exc: Exception) -> BackendUnavailable:
        logger.error("File store %s failed: %s", what, exc)
        return BackendUnavailable(f"{what} failed: {exc}")

    # -------------------------- lifecycle --------------------------
    def bootstrap(self) -> None:
        try:
            for directory in (
                self.config.data_dir,
                self.config.users_path.parent,
                self.config.audit_log_path.parent,
                self.config.backup_dir,
            ):
                directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise self._unavailable("bootstrap", exc) from exc

    # -------------------------- users --------------------------
    def load(self) -> list[User]:
        path = self.config.users_path
        try:
            if not path.exists():
                return []
            data = _read_json(path)
        except (OSError, ValueError) as exc:
            raise self._unavailable("reading users", exc) from exc
        try:
            records = data.get("users", []) if isinstance(data, dict) else data
            return _users_from(records or [])
        except _CORRUPT as exc:
            raise self._unavailable("reading users (corrupt users file)", exc) from exc

    def save(self, users: list[User]) -> None:
        try:
            _write_json(self.config.users_path, [u.to_dict() for u in users])
        except (OSError, TypeError, ValueError) as exc:
            raise self._unavailable("writing users", exc) from exc

    def find_by_username(self, username: str) -> Optional[User]:
        for user in self.load():
            if user.username == username:
                return user
        return None

    def insert(self, user: User) -> None:
        users = self.load()
        if any(u.username == user.username for u in users):
            raise DuplicateUsernameError(user.username)
        users.append(user)
        self.save(users)

    def update(self, username: str, fields: Mapping[str, Any]) -> User:
        users = self.load()
        for index, user in enumerate(users):
            if user.username == username:
                users[index] = user.merged(fields)
                self.save(users)
                return users[index]
        raise UserNotFoundError(username)

    def delete(self, username: str) -> None:
        users = self.load()
        remaining = [u for u in users if u.username != username]
        if len(remaining) == len(users):
            raise UserNotFoundError(username)
        self.save(remaining)

    # -------------------------- snapshots --------------------------
    def write_snapshot(self, operation_type: str, users: list[User]) -> BackupSnapshot:
        now = datetime.now(timezone.utc)
        tag = re.sub(r"[^A-Za-z0-9_-]", "_", operation_type) or "manual"
        stamp = now.strftime("%Y%m%dT%H%M%S%fZ")
        path = self.config.backup_dir / f"{_BACKUP_PREFIX}{tag}-{stamp}.json"
        suffix = 1
        while path.exists():
            path = self.config.backup_dir / f"{_BACKUP_PREFIX}{tag}-{stamp}-{suffix}.json"
            suffix += 1
        payload = {
            "operation_type": operation_type,
            "created_at": now.isoformat(),
            "record_count": len(users),
            "users": [u.to_dict() for u in users],
        }
        try:
            self.config.backup_dir.mkdir(parents=True, exist_ok=True)
            _write_json(path, payload)
        except (OSError, TypeError, ValueError) as exc:
            raise self._unavailable("writing snapshot", exc) from exc
        return BackupSnapshot(
            operation_type=operation_type,
            created_at=payload["created_at"],
            record_count=len(users),
            location=str(path),
        )

    def list_snapshots(self) -> list[BackupSnapshot]:
        try:
            if not self.config.backup_dir.exists():
                return []
            paths = sorted(self.config.backup_dir.glob(f"{_BACKUP_PREFIX}*.json"))
            snapshots = []
            for path in paths:
                data = _read_json(path)
                snapshots.append(
                    BackupSnapshot(
                        operation_type=str(data.get("operation_type") or ""),
                        created_at=str(data.get("created_at") or ""),
                        record_count=int(data.get("record_count") or 0),
                        location=str(path),
                    )
                )
        except OSError as exc:
            raise self._unavailable("listing snapshots", exc) from exc
        except _CORRUPT as exc:
            raise self._unavailable("listing snapshots (corrupt snapshot file)", exc) from exc
        snapshots.sort(key=lambda s: (s.created_at, s.location))
        return snapshots

    def read_snapshot(self, location: str) -> list[User]:
        path = Path(location)
        if path.parent.resolve() != self.config.backup_dir.resolve() or not path.exists():
            raise SnapshotNotFoundError(location)
        try:
            data = _read_json(path)
            return _users_from(data.get("users", []))
        except OSError as exc:
            raise self._unavailable("reading snapshot", exc) from exc
        except _CORRUPT as exc:
            raise self._unavailable("reading snapshot (corrupt snapshot file)", exc) from exc

    # -------------------------- audit --------------------------
    def append_audit(self, entry: AuditLogEntry) -> None:
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        try:
            with self.config.audit_log_path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as exc:
            raise self._unavailable("appending audit entry", exc) from exc

    def read_audit(self) -> list[AuditLogEntry]:
        path = self.config.audit_log_path
        try:
            if not path.exists():
                return []
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            raise self._unavailable("reading audit log", exc) from exc
        entries = []
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                entries.append(AuditLogEntry.from_dict(json.loads(line)))
            except _CORRUPT:
                logger.warning("Skipping unreadable audit line %d in %s", number, path)
        return entries
