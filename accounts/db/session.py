"""Engine/session helpers for the SQL backend."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, URL
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from accounts.core.config import SQLStoreConfig

Base = declarative_base()


def build_engine(config: SQLStoreConfig) -> Engine:
    url: URL = config.sqlalchemy_url()
    connect_args = {}
    if url.get_backend_name() == "postgresql":
        connect_args["connect_timeout"] = config.connect_timeout
    elif url.get_backend_name() == "sqlite":
        connect_args["timeout"] = config.connect_timeout
    return create_engine(url, future=True, pool_pre_ping=True, connect_args=connect_args)


def build_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    session: Session = factory()
    try:
        yield session
    finally:
        session.close()
