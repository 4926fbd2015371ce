"""Contract shared by the file-backed and the SQL-backed drivers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Mapping, Optional

from accounts.domain.models import AuditLogEntry, BackupSnapshot, User


class StorageDriver(ABC):
    """Raw user-record storage.

    Every method may raise ``BackendUnavailable`` when the medium cannot be
    reached. ``insert`` raises ``DuplicateUsernameError`` on a collision;
    ``update`` and ``delete`` raise ``UserNotFoundError`` for unknown names.
    """

    mode: str = ""
    export_dir: Optional[Path] = None

    @abstractmethod
    def bootstrap(self) -> None:
        """Create directories or schema. Safe to call more than once."""

    @abstractmethod
    def load(self) -> list[User]: ...

    @abstractmethod
    def save(self, users: list[User]) -> None:
        """Replace the whole collection in one step."""

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def insert(self, user: User) -> None: ...

    @abstractmethod
    def update(self, username: str, fields: Mapping[str, Any]) -> User: ...

    @abstractmethod
    def delete(self, username: str) -> None: ...

    @abstractmethod
    def write_snapshot(self, operation_type: str, users: list[User]) -> BackupSnapshot: ...

    @abstractmethod
    def list_snapshots(self) -> list[BackupSnapshot]:
        """Oldest first."""

    @abstractmethod
    def read_snapshot(self, location: str) -> list[User]: ...

    @abstractmethod
    def append_audit(self, entry: AuditLogEntry) -> None: ...

    @abstractmethod
    def read_audit(self) -> list[AuditLogEntry]:
        """Insertion order."""

    def close(self) -> None:
        """Release connections; the file driver holds none."""
