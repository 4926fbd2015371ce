"""SQLAlchemy models mirroring the JSON file store."""
from __future__ import annotations

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    String,
    Text,
    JSON,
    func,
)

from .session import Base


class UserRecord(Base):
    __tablename__ = "users"

    username = Column(String(255), primary_key=True)
    password_hash = Column(Text, nullable=False, default="")
    role = Column(String(16), nullable=False, default="user")
    status = Column(String(16), nullable=False, default="active")
    created_at = Column(String(64), nullable=False)
    profile = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class AuditLogRecord(Base):
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(String(64), nullable=False)
    action = Column(String(255), nullable=False)
    username = Column(String(255), nullable=False)
    performed_by = Column(String(255), nullable=True)
    details = Column(JSON, nullable=False, default=dict)


class SnapshotRecord(Base):
    __tablename__ = "user_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    operation_type = Column(String(64), nullable=False)
    created_at = Column(String(64), nullable=False)
    record_count = Column(Integer, nullable=False, default=0)
    payload = Column(JSON, nullable=False, default=list)
