"""Read-side helpers for browsing messages already sitting in an endpoint."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .codec import MessageFormatError, parse_document
from .endpoints import MailboxConfig

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class MessageSummary:
    """Listing entry for one message file."""

    id: str
    filename: str
    sender: str | None
    subject: str | None
    timestamp: str | None


@dataclass(slots=True, frozen=True)
class StoredMessage:
    """Full contents of a message file read from an endpoint."""

    id: str
    endpoint: str
    filename: str
    metadata: dict[str, Any]
    body: str

    @property
    def sender(self) -> str | None:
        return _optional_str(self.metadata.get("from"))

    @property
    def subject(self) -> str | None:
        return _optional_str(self.metadata.get("subject"))

    @property
    def reply_to(self) -> str | None:
        return _optional_str(self.metadata.get("replyTo"))


class MailboxReader:
    """List and read messages from configured endpoints."""

    def __init__(self, config: MailboxConfig) -> None:
        self._config = config

    async def list_messages(
        self, endpoint_id: str, limit: int | None = 10
    ) -> list[MessageSummary]:
        """Return summaries of the message files in an endpoint, sorted by name."""
        directory = self._config.endpoint_path(endpoint_id)
        endpoint = self._config.require_endpoint(endpoint_id)
        paths = await asyncio.to_thread(
            _matching_files, directory, endpoint.filename_pattern
        )
        if limit is not None:
            paths = paths[:limit]
        summaries = []
        for path in paths:
            summaries.append(await asyncio.to_thread(_summarize, path))
        return summaries

    async def read_message(self, endpoint_id: str, filename: str) -> StoredMessage:
        """Read one message; raises ``FileNotFoundError`` if it is missing."""
        directory = self._config.endpoint_path(endpoint_id)
        text = await asyncio.to_thread(
            (directory / filename).read_text, encoding="utf-8"
        )
        document = parse_document(text)
        message_id = _optional_str(document.metadata.get("id")) or filename
        return StoredMessage(
            id=message_id,
            endpoint=endpoint_id,
            filename=filename,
            metadata=document.metadata,
            body=document.body,
        )


def _matching_files(directory: Path, pattern: str) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(path for path in directory.glob(pattern) if path.is_file())


def _summarize(path: Path) -> MessageSummary:
    try:
        document = parse_document(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, MessageFormatError) as exc:
        LOGGER.debug("Listing %s without metadata: %s", path, exc)
        return MessageSummary(
            id=path.name, filename=path.name, sender=None, subject=None, timestamp=None
        )
    metadata = document.metadata
    return MessageSummary(
        id=_optional_str(metadata.get("id")) or path.name,
        filename=path.name,
        sender=_optional_str(metadata.get("from")),
        subject=_optional_str(metadata.get("subject")),
        timestamp=_optional_str(metadata.get("timestamp")),
    )


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


__all__ = ["MailboxReader", "MessageSummary", "StoredMessage"]
