"""Identity & persistence core: user accounts, login, roles, password reset,
audit trail and backups over a file store or a SQL database."""

from accounts.core.config import FileStoreConfig, SQLStoreConfig, StorageMode
from accounts.services.identity_service import IdentityService
from accounts.services.persistence import PersistenceAdapter

__all__ = [
    "FileStoreConfig",
    "IdentityService",
    "PersistenceAdapter",
    "SQLStoreConfig",
    "StorageMode",
]
