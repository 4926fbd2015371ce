"""
Persistence adapter.

Owns the storage driver chosen at construction time and layers the data
integrity rules on top of it: unique usernames, a snapshot before every
mutation, best-effort audit appends and bulk import/export.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union
import json
import logging
import os

from accounts.core.config import (
    BackendConfig,
    Settings,
    StorageMode,
    backend_config_from_settings,
    get_settings,
)
from accounts.core.security import hash_password, is_password_hash
from accounts.domain.errors import (
    AdapterNotInitialized,
    BackendUnavailable,
    DuplicateUsernameError,
    SnapshotNotFoundError,
    UserNotFoundError,
)
from accounts.domain.models import AuditLogEntry, ExportDocument, User, utc_now_iso
from accounts.domain.results import (
    AuditLogResult,
    BackupResult,
    BackupsResult,
    ErrorCode,
    ExportResult,
    ImportResult,
    Result,
    UserLookup,
    UsersResult,
)
from accounts.domain.validation import is_valid_role, is_valid_status, json_problem
from accounts.repositories import StorageDriver, create_driver

logger = logging.getLogger(__name__)

IMPORT_MODES = ("replace", "merge")
ImportSource = Union[ExportDocument, Mapping[str, Any], str, os.PathLike]


class InvalidImportError(ValueError):
    pass


def _duplicates(users: Iterable[User]) -> list[str]:
    seen: set[str] = set()
    dupes: list[str] = []
    for user in users:
        if user.username in seen and user.username not in dupes:
            dupes.append(user.username)
        seen.add(user.username)
    return dupes


def _user_from_import(record: Any) -> User:
    """Validate one imported record; plaintext legacy passwords are hashed here."""
    if not isinstance(record, Mapping):
        raise InvalidImportError("Invalid user data in import document")
    username = record.get("username")
    if not isinstance(username, str) or not username:
        raise InvalidImportError("Invalid user data in import document: missing username")
    role = record.get("role") or "user"
    if not is_valid_role(role):
        raise InvalidImportError(f"Invalid role for user {username}")
    status = record.get("status") or "active"
    if not is_valid_status(status):
        raise InvalidImportError(f"Invalid status for user {username}")
    password_hash = record.get("password_hash")
    if not is_password_hash(password_hash):
        legacy = record.get("password")
        if not isinstance(legacy, str) or not legacy:
            raise InvalidImportError(f"No credentials for user {username}")
        password_hash = hash_password(legacy)
    return User(
        username=username,
        password_hash=password_hash,
        role=role,
        status=status,
        created_at=str(record.get("created_at") or record.get("createdAt") or utc_now_iso()),
        profile=dict(record.get("profile") or {}),
    )


class PersistenceAdapter:
    """CRUD over user records plus backups, audit trail and import/export.

    Call ``initialize()`` before anything else; every other call made first
    raises ``AdapterNotInitialized``. The session accessors are the exception:
    they only touch memory.
    """

    def __init__(self, mode: StorageMode | str | None = None, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.mode = StorageMode(mode) if mode else self.settings.storage_mode
        self._driver: Optional[StorageDriver] = None
        self._current_user: Optional[User] = None

    # -------------------------------------- lifecycle --------------------------------------
    @property
    def initialized(self) -> bool:
        return self._driver is not None

    @property
    def driver(self) -> StorageDriver:
        if self._driver is None:
            raise AdapterNotInitialized("PersistenceAdapter.initialize() must be called first")
        return self._driver

    def initialize(self, config: BackendConfig | None = None, mode: StorageMode | str | None = None) -> Result:
        if mode is not None and StorageMode(mode) is not self.mode:
            if self.initialized:
                raise ValueError(f"storage mode is fixed to {self.mode.value} for this adapter")
            self.mode = StorageMode(mode)
        if self.initialized:
            return Result.ok()
        driver = create_driver(self.mode, config or backend_config_from_settings(self.mode, self.settings))
        try:
            driver.bootstrap()
        except BackendUnavailable as exc:
            return Result.fail(ErrorCode.BACKEND_UNAVAILABLE, f"Storage backend unavailable: {exc}")
        self._driver = driver
        logger.info("Persistence adapter initialized (mode=%s)", self.mode.value)
        return Result.ok()

    def close(self) -> None:
        if self._driver is not None:
            self._driver.close()
        self._driver = None

    # -------------------------------------- session --------------------------------------
    def set_current_user(self, user: Optional[User]) -> None:
        self._current_user = user

    def get_current_user(self) -> Optional[User]:
        return self._current_user

    # -------------------------------------- helpers --------------------------------------
    @staticmethod
    def _backend_failure(exc: Exception, result_type=Result, **payload):
        return result_type.fail(ErrorCode.BACKEND_UNAVAILABLE, f"Storage backend unavailable: {exc}", **payload)

    def _snapshot(self, operation_type: str) -> BackupResult:
        try:
            users = self.driver.load()
            snapshot = self.driver.write_snapshot(operation_type, users)
        except BackendUnavailable as exc:
            logger.error("Backup before %s failed: %s", operation_type, exc)
            return BackupResult.fail(ErrorCode.IO_FAILURE, f"Backup failed: {exc}")
        self.add_audit_log_entry(
            "backup_created",
            "system",
            {"operation_type": operation_type, "location": snapshot.location, "record_count": snapshot.record_count},
        )
        return BackupResult.ok(snapshot=snapshot)

    # -------------------------------------- users --------------------------------------
    def load_users(self) -> UsersResult:
        try:
            return UsersResult.ok(users=self.driver.load())
        except BackendUnavailable as exc:
            return self._backend_failure(exc, UsersResult)

    def save_users(self, users: list[User]) -> Result:
        """Replace the whole collection; usernames must be unique across ``users``."""
        return self._replace_users(users, "save")

    def find_user(self, username: str) -> UserLookup:
        try:
            return UserLookup.ok(user=self.driver.find_by_username(username))
        except BackendUnavailable as exc:
            return self._backend_failure(exc, UserLookup)

    def add_user(self, user: User) -> Result:
        problem = json_problem(user.to_dict())
        if problem:
            return Result.fail(ErrorCode.INVALID_INPUT, problem)
        existing = self.find_user(user.username)
        if not existing:
            return existing
        if existing.user is not None:
            return Result.fail(ErrorCode.DUPLICATE_USERNAME, "Username already exists")
        backup = self._snapshot("add")
        if not backup:
            return backup
        try:
            self.driver.insert(user)
        except DuplicateUsernameError:
            return Result.fail(ErrorCode.DUPLICATE_USERNAME, "Username already exists")
        except BackendUnavailable as exc:
            return self._backend_failure(exc)
        return Result.ok()

    def update_user(self, username: str, fields: Mapping[str, Any]) -> UserLookup:
        problem = json_problem(dict(fields))
        if problem:
            return UserLookup.fail(ErrorCode.INVALID_INPUT, problem)
        existing = self.find_user(username)
        if not existing:
            return existing
        if existing.user is None:
            return UserLookup.fail(ErrorCode.NOT_FOUND, "User not found")
        if not fields:
            return UserLookup.ok(user=existing.user)
        backup = self._snapshot("update")
        if not backup:
            return UserLookup.fail(backup.error, backup.message)
        try:
            updated = self.driver.update(username, fields)
        except UserNotFoundError:
            return UserLookup.fail(ErrorCode.NOT_FOUND, "User not found")
        except BackendUnavailable as exc:
            return self._backend_failure(exc, UserLookup)
        if self._current_user and self._current_user.username == username:
            self._current_user = updated
        return UserLookup.ok(user=updated)

    def delete_user(self, username: str) -> Result:
        existing = self.find_user(username)
        if not existing:
            return existing
        if existing.user is None:
            return Result.fail(ErrorCode.NOT_FOUND, "User not found")
        backup = self._snapshot("delete")
        if not backup:
            return backup
        try:
            self.driver.delete(username)
        except UserNotFoundError:
            return Result.fail(ErrorCode.NOT_FOUND, "User not found")
        except BackendUnavailable as exc:
            return self._backend_failure(exc)
        if self._current_user and self._current_user.username == username:
            self._current_user = None
        return Result.ok()

    # -------------------------------------- backups --------------------------------------
    def create_backup(self, operation_type: str) -> BackupResult:
        return self._snapshot(operation_type)

    def list_backups(self) -> BackupsResult:
        try:
            return BackupsResult.ok(snapshots=self.driver.list_snapshots())
        except BackendUnavailable as exc:
            return self._backend_failure(exc, BackupsResult)

    def restore_backup(self, location: str) -> Result:
        try:
            users = self.driver.read_snapshot(location)
        except SnapshotNotFoundError:
            return Result.fail(ErrorCode.NOT_FOUND, "Backup not found")
        except BackendUnavailable as exc:
            return self._backend_failure(exc)
        result = self._replace_users(users, "restore")
        if result:
            self.add_audit_log_entry("restore_backup", "all", {"location": location, "record_count": len(users)})
        return result

    def _replace_users(self, users: list[User], operation_type: str) -> Result:
        """Replace the collection, tagging the preceding snapshot with ``operation_type``."""
        dupes = _duplicates(users)
        if dupes:
            return Result.fail(ErrorCode.DUPLICATE_USERNAME, f"Duplicate usernames: {', '.join(dupes)}")
        backup = self._snapshot(operation_type)
        if not backup:
            return backup
        try:
            self.driver.save(list(users))
        except BackendUnavailable as exc:
            return self._backend_failure(exc)
        return Result.ok()

    # -------------------------------------- audit --------------------------------------
    def add_audit_log_entry(self, action: str, username: str, details: Optional[Mapping[str, Any]] = None) -> Result:
        entry = AuditLogEntry(
            timestamp=utc_now_iso(),
            action=action,
            username=username,
            performed_by=self._current_user.username if self._current_user else None,
            details=dict(details or {}),
        )
        try:
            self.driver.append_audit(entry)
        except BackendUnavailable as exc:
            logger.warning("Audit entry %s for %s was not recorded: %s", action, username, exc)
            return Result.fail(ErrorCode.IO_FAILURE, f"Audit log write failed: {exc}")
        return Result.ok()

    def get_audit_log(self) -> AuditLogResult:
        try:
            return AuditLogResult.ok(entries=self.driver.read_audit())
        except BackendUnavailable as exc:
            return self._backend_failure(exc, AuditLogResult)

    # -------------------------------------- export / import --------------------------------------
    def _default_export_path(self) -> Path:
        export_dir = self.driver.export_dir or self.settings.data_dir / "exports"
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        return Path(export_dir) / f"users-export-{stamp}.json"

    def export_user_data(
        self, path: str | os.PathLike | None = None, include_password_hashes: bool = False
    ) -> ExportResult:
        loaded = self.load_users()
        if not loaded:
            return ExportResult.fail(loaded.error, loaded.message)
        document = ExportDocument(
            users=[u.to_dict(include_password_hash=include_password_hashes) for u in loaded.users],
            source_mode=self.mode.value,
            includes_password_hashes=include_password_hashes,
        )
        target = Path(path) if path else self._default_export_path()
        if target is not None:
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(json.dumps(document.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
            except OSError as exc:
                logger.error("Export to %s failed: %s", target, exc)
                return ExportResult.fail(ErrorCode.IO_FAILURE, f"Failed to export user data: {exc}")
        self.add_audit_log_entry(
            "export_users",
            "all",
            {
                "path": str(target) if target else None,
                "record_count": len(loaded.users),
                "includes_password_hashes": include_password_hashes,
            },
        )
        message = f"Exported {len(loaded.users)} user records" + (f" to {target}" if target else "")
        return ExportResult.ok(message, path=target, document=document)

    @staticmethod
    def _coerce_document(data: ImportSource) -> ExportDocument:
        if isinstance(data, ExportDocument):
            return data
        if isinstance(data, Mapping):
            return ExportDocument.from_dict(data)
        if isinstance(data, os.PathLike):
            data = Path(data).read_text(encoding="utf-8")
        if isinstance(data, str):
            parsed = json.loads(data)
            if not isinstance(parsed, Mapping):
                raise InvalidImportError("Invalid import document format")
            return ExportDocument.from_dict(parsed)
        raise InvalidImportError("Unsupported import source")

    def import_user_data(self, data: ImportSource, mode: str = "merge") -> ImportResult:
        if mode not in IMPORT_MODES:
            return ImportResult.fail(ErrorCode.INVALID_INPUT, f"Unknown import mode: {mode}")
        try:
            document = self._coerce_document(data)
            incoming = [_user_from_import(r) for r in document.users]
        except OSError as exc:
            return ImportResult.fail(ErrorCode.IO_FAILURE, f"Import file could not be read: {exc}")
        except ValueError as exc:
            # json.JSONDecodeError and InvalidImportError are both ValueErrors
            return ImportResult.fail(ErrorCode.INVALID_INPUT, str(exc))

        conflicts: list[str] = []
        if mode == "replace":
            dupes = _duplicates(incoming)
            if dupes:
                return ImportResult.fail(ErrorCode.DUPLICATE_USERNAME, f"Duplicate usernames: {', '.join(dupes)}")
            result_users = incoming
            imported = len(incoming)
        else:
            loaded = self.load_users()
            if not loaded:
                return ImportResult.fail(loaded.error, loaded.message)
            known = {u.username for u in loaded.users}
            added: list[User] = []
            for user in incoming:
                if user.username in known:
                    conflicts.append(user.username)
                    continue
                known.add(user.username)
                added.append(user)
            imported = len(added)
            if not added:
                return ImportResult.ok("Import finished. No new users.", conflicts=conflicts)
            result_users = loaded.users + added

        saved = self._replace_users(result_users, "import")
        if not saved:
            return ImportResult.fail(saved.error, saved.message, conflicts=conflicts)
        self.add_audit_log_entry(
            "import_users",
            "all",
            {"mode": mode, "imported_count": imported, "conflicts": conflicts},
        )
        logger.info("Imported %d users (%s), %d conflicts", imported, mode, len(conflicts))
        return ImportResult.ok(
            f"Import successful. {imported} users added, {len(conflicts)} existing users kept.",
            imported_count=imported,
            conflicts=conflicts,
        )
