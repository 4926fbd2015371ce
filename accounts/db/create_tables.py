"""Create the accounts schema (idempotent)."""
from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .session import Base, build_engine
from . import models  # noqa: F401  # ensure models are imported for metadata


def create_all(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


if __name__ == "__main__":
    from accounts.core.config import StorageMode, backend_config_from_settings

    engine = build_engine(backend_config_from_settings(StorageMode.SQL))
    try:
        create_all(engine)
        print("Database tables created successfully.")
    except SQLAlchemyError as exc:
        raise SystemExit(f"Failed to create tables: {exc}") from exc
    finally:
        engine.dispose()
