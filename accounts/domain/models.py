"""Domain records shared by the drivers, the adapter and the identity service."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

ROLES = ("admin", "user")
STATUSES = ("active", "inactive")
EXPORT_VERSION = "1.0"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class User:
    username: str
    password_hash: str
    role: str = "user"
    status: str = "active"
    created_at: str = field(default_factory=utc_now_iso)
    profile: dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def merged(self, fields: Mapping[str, Any]) -> "User":
        """Return a copy with only the supplied fields replaced."""
        data = self.to_dict()
        for key, value in fields.items():
            if key == "username":
                continue
            if key == "profile" and isinstance(value, Mapping):
                data["profile"] = {**data["profile"], **value}
            elif key in data:
                data[key] = value
        return User.from_dict(data)

    def to_dict(self, include_password_hash: bool = True) -> dict[str, Any]:
        data = asdict(self)
        data["profile"] = dict(self.profile or {})
        if not include_password_hash:
            data.pop("password_hash", None)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "User":
        return cls(
            username=str(data["username"]),
            password_hash=str(data.get("password_hash") or ""),
            role=str(data.get("role") or "user"),
            status=str(data.get("status") or "active"),
            created_at=str(data.get("created_at") or utc_now_iso()),
            profile=dict(data.get("profile") or {}),
        )


@dataclass
class PasswordResetTicket:
    username: str
    code: str
    issued_at: float

    def expired(self, now: float, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            return False
        return (self.issued_at + ttl_seconds) < now


@dataclass
class AuditLogEntry:
    timestamp: str
    action: str
    username: str
    performed_by: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuditLogEntry":
        return cls(
            timestamp=str(data.get("timestamp") or ""),
            action=str(data.get("action") or ""),
            username=str(data.get("username") or ""),
            performed_by=data.get("performed_by"),
            details=dict(data.get("details") or {}),
        )


@dataclass
class BackupSnapshot:
    operation_type: str
    created_at: str
    record_count: int
    location: str


@dataclass
class ExportDocument:
    users: list[dict[str, Any]]
    export_date: str = field(default_factory=utc_now_iso)
    source_mode: str = ""
    includes_password_hashes: bool = False
    version: str = EXPORT_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": {
                "export_date": self.export_date,
                "version": self.version,
                "record_count": len(self.users),
                "source_mode": self.source_mode,
                "includes_password_hashes": self.includes_password_hashes,
            },
            "users": [dict(u) for u in self.users],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExportDocument":
        meta = data.get("metadata") or {}
        users = data.get("users")
        if not isinstance(users, list):
            raise ValueError("Invalid import document: 'users' must be a list")
        return cls(
            users=[dict(u) if isinstance(u, Mapping) else u for u in users],
            export_date=str(meta.get("export_date") or meta.get("exportDate") or utc_now_iso()),
            source_mode=str(meta.get("source_mode") or meta.get("platform") or ""),
            includes_password_hashes=bool(meta.get("includes_password_hashes", False)),
            version=str(meta.get("version") or EXPORT_VERSION),
        )
