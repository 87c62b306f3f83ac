"""SQLite-backed message status store."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from types import TracebackType
from typing import TypeVar, cast

from ..core.config import StorageSettings
from ..core.datetime_utils import parse_datetime, serialize_datetime
from ..core.interfaces import StatusStore
from ..core.models import MessageStatus, ProcessingStatus

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

MEMORY_DATABASE = ":memory:"

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS message_statuses (
        id TEXT PRIMARY KEY,
        status TEXT NOT NULL,
        endpoint TEXT NOT NULL,
        filename TEXT NOT NULL,
        created_at TEXT NOT NULL,
        processed_at TEXT,
        error TEXT,
        summary TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_message_status ON message_statuses(status)",
)

_COLUMNS = "id, status, endpoint, filename, created_at, processed_at, error, summary"


class StorageError(RuntimeError):
    """Raised when the status database cannot be read or written."""


class SqliteStatusStore(StatusStore):
    """Persist message statuses in a single SQLite table.

    The store owns its connection. Blocking calls are pushed to worker threads
    and serialized with a lock so concurrent flows can share one connection.
    """

    def __init__(self, settings: StorageSettings) -> None:
        """Open the database and make sure the schema exists."""
        self._settings = settings
        db_path = Path(settings.db_path)
        if str(db_path) != MEMORY_DATABASE:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = sqlite3.connect(
            str(db_path),
            check_same_thread=False,
        )
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._closed = False
        self._apply_schema()

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> SqliteStatusStore:
        """Enter context manager scope."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure the connection is closed when exiting context manager."""
        self.close()

    # StatusStore API ---------------------------------------------------------
    async def upsert(self, status: MessageStatus) -> None:
        """Insert the record or fully replace the one stored under its id."""
        await self._run(self._upsert, status)

    async def get(self, message_id: str) -> MessageStatus | None:
        """Return the stored record for ``message_id``."""
        return await self._run(self._get, message_id)

    async def list(
        self,
        filter_status: ProcessingStatus | None = None,
        limit: int | None = None,
    ) -> list[MessageStatus]:
        """Return records newest first, optionally filtered by status."""
        return await self._run(self._list, filter_status, limit)

    async def count(self, filter_status: ProcessingStatus | None = None) -> int:
        """Return the number of stored records, optionally filtered by status."""
        return await self._run(self._count, filter_status)

    async def clear(self) -> None:
        """Delete every record."""
        LOGGER.warning("Clearing all message statuses")
        await self._run(self._clear)

    def close(self) -> None:
        """Close the database connection. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._connection.close()

    @property
    def is_closed(self) -> bool:
        return self._closed

    # Blocking helpers --------------------------------------------------------
    async def _run(self, func: Callable[..., T], *args: object) -> T:
        return await asyncio.to_thread(self._locked, func, *args)

    def _locked(self, func: Callable[..., T], *args: object) -> T:
        with self._lock:
            if self._closed:
                raise StorageError("Status store is closed")
            try:
                return func(*args)
            except sqlite3.Error as exc:
                LOGGER.error("Status store operation failed: %s", exc, exc_info=True)
                raise StorageError(f"Status store error: {exc}") from exc

    def _apply_schema(self) -> None:
        with self._connection:
            for statement in SCHEMA:
                self._connection.execute(statement)

    def _upsert(self, status: MessageStatus) -> None:
        LOGGER.debug("Recording status %s for message %s", status.status, status.id)
        with self._connection:
            self._connection.execute(
                f"""
                INSERT INTO message_statuses ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    status=excluded.status,
                    endpoint=excluded.endpoint,
                    filename=excluded.filename,
                    created_at=excluded.created_at,
                    processed_at=excluded.processed_at,
                    error=excluded.error,
                    summary=excluded.summary
                """,
                (
                    status.id,
                    str(status.status),
                    status.endpoint,
                    status.filename,
                    serialize_datetime(status.created_at),
                    serialize_datetime(status.processed_at),
                    status.error,
                    status.summary,
                ),
            )

    def _get(self, message_id: str) -> MessageStatus | None:
        cur = self._connection.execute(
            f"SELECT {_COLUMNS} FROM message_statuses WHERE id = ?",
            (message_id,),
        )
        row = cur.fetchone()
        return _row_to_status(row) if row is not None else None

    def _list(
        self, filter_status: ProcessingStatus | None, limit: int | None
    ) -> list[MessageStatus]:
        query = f"SELECT {_COLUMNS} FROM message_statuses"
        params: list[object] = []
        if filter_status is not None:
            query += " WHERE status = ?"
            params.append(str(filter_status))
        query += " ORDER BY created_at DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        cur = self._connection.execute(query, params)
        return [_row_to_status(row) for row in cur.fetchall()]

    def _count(self, filter_status: ProcessingStatus | None) -> int:
        if filter_status is None:
            cur = self._connection.execute("SELECT COUNT(*) FROM message_statuses")
        else:
            cur = self._connection.execute(
                "SELECT COUNT(*) FROM message_statuses WHERE status = ?",
                (str(filter_status),),
            )
        return int(cur.fetchone()[0])

    def _clear(self) -> None:
        with self._connection:
            self._connection.execute("DELETE FROM message_statuses")


def _row_to_status(row: sqlite3.Row) -> MessageStatus:
    return MessageStatus(
        id=row["id"],
        status=ProcessingStatus(row["status"]),
        endpoint=row["endpoint"],
        filename=row["filename"],
        created_at=cast(
            datetime, parse_datetime(row["created_at"], assume_utc=True)
        ),
        processed_at=parse_datetime(row["processed_at"], assume_utc=True),
        error=row["error"],
        summary=row["summary"],
    )


__all__ = ["SCHEMA", "SqliteStatusStore", "StorageError"]
