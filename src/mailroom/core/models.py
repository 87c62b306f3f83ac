"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from .datetime_utils import utc_now


class StatusTransitionError(ValueError):
    """Raised when a status change would move a message backwards or skip a step."""


@dataclass(slots=True, frozen=True)
class Message:
    """A validated message parsed from one mailbox file."""

    id: str
    file_path: Path
    endpoint_id: str
    metadata: dict[str, Any]
    body: str
    created_at: datetime
    modified_at: datetime

    @property
    def filename(self) -> str:
        return self.file_path.name

    @property
    def message_type(self) -> str | None:
        """Return the ``type`` metadata tag, if one was set."""
        value = self.metadata.get("type")
        if value is None or value == "":
            return None
        return str(value)


@dataclass(slots=True, frozen=True)
class MessageCreated:
    """A new file appeared in a watched endpoint and parsed cleanly."""

    message: Message


@dataclass(slots=True, frozen=True)
class MessageUpdated:
    """A known file was modified and still parses cleanly."""

    message: Message


@dataclass(slots=True, frozen=True)
class MessageDeleted:
    """A file was removed from a watched endpoint."""

    file_path: Path
    endpoint_id: str


@dataclass(slots=True, frozen=True)
class ParseError:
    """A file could not be read, parsed, or validated."""

    file_path: Path
    reason: str


FolderEvent = MessageCreated | MessageUpdated | MessageDeleted | ParseError


@dataclass(slots=True, frozen=True)
class WatcherFailure:
    """The underlying file-system monitor failed for an endpoint."""

    endpoint_id: str | None
    error: BaseException


class ProcessingStatus(StrEnum):
    """Lifecycle states for a message's processing attempt."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


ALLOWED_TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset({ProcessingStatus.PROCESSING}),
    ProcessingStatus.PROCESSING: frozenset(
        {ProcessingStatus.COMPLETED, ProcessingStatus.FAILED}
    ),
    ProcessingStatus.COMPLETED: frozenset(),
    ProcessingStatus.FAILED: frozenset(),
}


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True, frozen=True)
class MessageStatus:
    """Persisted processing state for one message id."""

    id: str
    status: ProcessingStatus
    endpoint: str
    filename: str
    created_at: datetime = field(default_factory=utc_now)
    processed_at: datetime | None = None
    error: str | None = None
    summary: str | None = None

    @classmethod
    def pending(cls, message_id: str, endpoint: str, filename: str) -> MessageStatus:
        """Return the initial record written when a message is first seen."""
        return cls(
            id=message_id,
            status=ProcessingStatus.PENDING,
            endpoint=endpoint,
            filename=filename,
        )

    def advance(
        self,
        status: ProcessingStatus,
        *,
        summary: str | None = None,
        error: str | None = None,
        at: datetime | None = None,
    ) -> MessageStatus:
        """Return a copy moved forward to ``status``.

        Terminal transitions stamp ``processed_at``; ``summary`` is kept only on
        completion and ``error`` only on failure.
        """
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise StatusTransitionError(
                f"Cannot move message {self.id} from {self.status} to {status}"
            )
        if not status.is_terminal:
            return replace(self, status=status)
        return replace(
            self,
            status=status,
            processed_at=at or utc_now(),
            summary=summary if status is ProcessingStatus.COMPLETED else None,
            error=error if status is ProcessingStatus.FAILED else None,
        )


__all__ = [
    "ALLOWED_TRANSITIONS",
    "FolderEvent",
    "Message",
    "MessageCreated",
    "MessageDeleted",
    "MessageStatus",
    "MessageUpdated",
    "ParseError",
    "ProcessingStatus",
    "StatusTransitionError",
    "WatcherFailure",
]
