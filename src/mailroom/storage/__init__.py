"""Persistence for message processing state."""

from .sqlite import SqliteStatusStore, StorageError

__all__ = ["SqliteStatusStore", "StorageError"]
