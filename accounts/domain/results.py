"""Typed outcomes returned by every public operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .models import AuditLogEntry, BackupSnapshot, ExportDocument, User


class ErrorCode(str, Enum):
    BACKEND_UNAVAILABLE = "backend_unavailable"
    DUPLICATE_USERNAME = "duplicate_username"
    NOT_FOUND = "not_found"
    USERNAME_TAKEN = "username_taken"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_OR_EXPIRED_CODE = "invalid_or_expired_code"
    IO_FAILURE = "io_failure"
    INVALID_INPUT = "invalid_input"
    LOCKED_OUT = "locked_out"
    LAST_ADMIN = "last_admin"


@dataclass
class Result:
    success: bool
    error: Optional[ErrorCode] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, message: Optional[str] = None, **payload):
        return cls(success=True, message=message, **payload)

    @classmethod
    def fail(cls, error: ErrorCode, message: Optional[str] = None, **payload):
        return cls(success=False, error=error, message=message, **payload)

    def __bool__(self) -> bool:
        return self.success


@dataclass
class UserLookup(Result):
    user: Optional[User] = None


@dataclass
class UsersResult(Result):
    users: list[User] = field(default_factory=list)


@dataclass
class ExportResult(Result):
    path: Optional[Path] = None
    document: Optional[ExportDocument] = None


@dataclass
class ImportResult(Result):
    imported_count: int = 0
    conflicts: list[str] = field(default_factory=list)


@dataclass
class ResetInitiation(Result):
    code: Optional[str] = None


@dataclass
class AuditLogResult(Result):
    entries: list[AuditLogEntry] = field(default_factory=list)


@dataclass
class BackupResult(Result):
    snapshot: Optional[BackupSnapshot] = None


@dataclass
class BackupsResult(Result):
    snapshots: list[BackupSnapshot] = field(default_factory=list)
