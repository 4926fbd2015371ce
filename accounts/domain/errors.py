"""Exceptions raised by storage drivers.

These never leave the persistence adapter; it turns them into typed results.
``AdapterNotInitialized`` is the exception callers can see, and only when
they skip ``initialize()``.
"""

from __future__ import annotations


class StorageError(Exception):
    """Base class for storage-related failures."""


class BackendUnavailable(StorageError):
    """The file system or database connection could not be reached."""


class DuplicateUsernameError(StorageError):
    def __init__(self, username: str):
        super().__init__(f"username already exists: {username}")
        self.username = username


class UserNotFoundError(StorageError):
    def __init__(self, username: str):
        super().__init__(f"user not found: {username}")
        self.username = username


class SnapshotNotFoundError(StorageError):
    pass


class AdapterNotInitialized(RuntimeError):
    """Raised when the adapter is used before ``initialize()``."""
