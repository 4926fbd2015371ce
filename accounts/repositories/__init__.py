"""
Storage drivers.

Two interchangeable implementations of ``StorageDriver``: a JSON file store
for the desktop build and a SQL store for the web build. The choice is made
once, when the persistence adapter is constructed.
"""

from __future__ import annotations

from accounts.core.config import BackendConfig, FileStoreConfig, SQLStoreConfig, StorageMode
from .base import StorageDriver
from .json_storage import JsonFileDriver
from .sql_repository import SQLDriver


def create_driver(mode: StorageMode, config: BackendConfig) -> StorageDriver:
    if mode is StorageMode.FILE:
        if not isinstance(config, FileStoreConfig):
            raise TypeError("file mode requires a FileStoreConfig")
        return JsonFileDriver(config)
    if not isinstance(config, SQLStoreConfig):
        raise TypeError("sql mode requires a SQLStoreConfig")
    return SQLDriver(config)


__all__ = ["StorageDriver", "JsonFileDriver", "SQLDriver", "create_driver"]
