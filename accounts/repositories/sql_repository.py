"""SQL storage driver backed by SQLAlchemy."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional
import logging

from sqlalchemy import delete, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from accounts.core.config import SQLStoreConfig
from accounts.db.create_tables import create_all
from accounts.db.models import AuditLogRecord, SnapshotRecord, UserRecord
from accounts.db.session import build_engine, build_sessionmaker, session_scope
from accounts.domain.errors import (
    BackendUnavailable,
    DuplicateUsernameError,
    SnapshotNotFoundError,
    StorageError,
    UserNotFoundError,
)
from accounts.domain.models import AuditLogEntry, BackupSnapshot, User, utc_now_iso
from .base import StorageDriver

logger = logging.getLogger(__name__)

_SNAPSHOT_SCHEME = "snapshot:"


def _to_user(record: UserRecord) -> User:
    return User(
        username=record.username,
        password_hash=record.password_hash or "",
        role=record.role or "user",
        status=record.status or "active",
        created_at=record.created_at or utc_now_iso(),
        profile=dict(record.profile or {}),
    )


def _to_record(user: User) -> UserRecord:
    return UserRecord(
        username=user.username,
        password_hash=user.password_hash,
        role=user.role,
        status=user.status,
        created_at=user.created_at,
        profile=dict(user.profile or {}),
    )


class SQLDriver(StorageDriver):
    """CRUD helpers wrapping the SQLAlchemy session."""

    mode = "sql"

    def __init__(self, config: SQLStoreConfig):
        self.config = config
        self.export_dir = config.export_dir
        self._engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker] = None

    @contextmanager
    def _session(self) -> Iterator[Session]:
        if self._sessionmaker is None:
            raise BackendUnavailable("SQL driver used before bootstrap")
        try:
            with session_scope(self._sessionmaker) as session:
                yield session
        except StorageError:
            raise
        except SQLAlchemyError as exc:
            logger.error("SQL backend error: %s", exc)
            raise BackendUnavailable(str(exc)) from exc

    # -------------------------- lifecycle --------------------------
    def bootstrap(self) -> None:
        if self._engine is not None:
            return
        try:
            engine = build_engine(self.config)
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            create_all(engine)
        except SQLAlchemyError as exc:
            logger.error("Could not reach SQL backend: %s", exc)
            raise BackendUnavailable(str(exc)) from exc
        self._engine = engine
        self._sessionmaker = build_sessionmaker(engine)

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._sessionmaker = None

    # -------------------------- users --------------------------
    def load(self) -> list[User]:
        with self._session() as session:
            records = session.execute(select(UserRecord).order_by(UserRecord.created_at, UserRecord.username)).scalars().all()
            return [_to_user(r) for r in records]

    def save(self, users: list[User]) -> None:
        with self._session() as session:
            session.execute(delete(UserRecord))
            session.add_all([_to_record(u) for u in users])
            session.commit()

    def find_by_username(self, username: str) -> Optional[User]:
        with self._session() as session:
            record = session.get(UserRecord, username)
            return _to_user(record) if record else None

    def insert(self, user: User) -> None:
        with self._session() as session:
            session.add(_to_record(user))
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateUsernameError(user.username) from exc

    def update(self, username: str, fields: Mapping[str, Any]) -> User:
        with self._session() as session:
            record = session.get(UserRecord, username)
            if not record:
                raise UserNotFoundError(username)
            merged = _to_user(record).merged(fields)
            record.password_hash = merged.password_hash
            record.role = merged.role
            record.status = merged.status
            record.profile = dict(merged.profile)
            session.commit()
            return merged

    def delete(self, username: str) -> None:
        with self._session() as session:
            result = session.execute(delete(UserRecord).where(UserRecord.username == username))
            if not result.rowcount:
                session.rollback()
                raise UserNotFoundError(username)
            session.commit()

    # -------------------------- snapshots --------------------------
    def write_snapshot(self, operation_type: str, users: list[User]) -> BackupSnapshot:
        entity = SnapshotRecord(
            operation_type=operation_type,
            created_at=utc_now_iso(),
            record_count=len(users),
            payload=[u.to_dict() for u in users],
        )
        with self._session() as session:
            session.add(entity)
            session.commit()
            return BackupSnapshot(
                operation_type=entity.operation_type,
                created_at=entity.created_at,
                record_count=entity.record_count,
                location=f"{_SNAPSHOT_SCHEME}{entity.id}",
            )

    def list_snapshots(self) -> list[BackupSnapshot]:
        with self._session() as session:
            stmt = select(
                SnapshotRecord.id,
                SnapshotRecord.operation_type,
                SnapshotRecord.created_at,
                SnapshotRecord.record_count,
            ).order_by(SnapshotRecord.id)
            return [
                BackupSnapshot(
                    operation_type=row.operation_type,
                    created_at=row.created_at,
                    record_count=row.record_count,
                    location=f"{_SNAPSHOT_SCHEME}{row.id}",
                )
                for row in session.execute(stmt)
            ]

    def read_snapshot(self, location: str) -> list[User]:
        raw_id = location[len(_SNAPSHOT_SCHEME) :] if location.startswith(_SNAPSHOT_SCHEME) else ""
        if not raw_id.isdigit():
            raise SnapshotNotFoundError(location)
        with self._session() as session:
            entity = session.get(SnapshotRecord, int(raw_id))
            if not entity:
                raise SnapshotNotFoundError(location)
            return [User.from_dict(r) for r in entity.payload or []]

    # -------------------------- audit --------------------------
    def append_audit(self, entry: AuditLogEntry) -> None:
        with self._session() as session:
            session.add(
                AuditLogRecord(
                    timestamp=entry.timestamp,
                    action=entry.action,
                    username=entry.username,
                    performed_by=entry.performed_by,
                    details=dict(entry.details or {}),
                )
            )
            session.commit()

    def read_audit(self) -> list[AuditLogEntry]:
        with self._session() as session:
            records = session.execute(select(AuditLogRecord).order_by(AuditLogRecord.id)).scalars().all()
            return [
                AuditLogEntry(
                    timestamp=r.timestamp,
                    action=r.action,
                    username=r.username,
                    performed_by=r.performed_by,
                    details=dict(r.details or {}),
                )
                for r in records
            ]
