"""Serialize outgoing messages into endpoint directories."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..core.datetime_utils import serialize_datetime, utc_now
from .codec import serialize_document
from .endpoints import Direction, MailboxConfig, UnknownEndpointError

LOGGER = logging.getLogger(__name__)

DEFAULT_SENDER = "concierge-agent"


class MessageWriter:
    """Write messages (metadata block + body) into configured endpoints."""

    def __init__(self, config: MailboxConfig) -> None:
        self._config = config

    @property
    def config(self) -> MailboxConfig:
        return self._config

    async def write(
        self,
        endpoint_id: str,
        body: str,
        extra_metadata: Mapping[str, Any] | None = None,
        filename: str | None = None,
    ) -> Path:
        """Write a message and return the full path of the new file.

        The metadata starts as ``{id, timestamp}`` and ``extra_metadata`` is laid
        over it, so callers may replace the generated id or timestamp.
        """
        endpoint = self._config.require_endpoint(endpoint_id)
        directory = self._config.endpoint_path(endpoint_id)

        metadata: dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "timestamp": serialize_datetime(utc_now()),
        }
        if extra_metadata:
            metadata.update(extra_metadata)

        if filename is None:
            filename = f"{_filename_stem(metadata['id'])}.{endpoint.file_extension}"
        file_path = directory / filename
        content = serialize_document(metadata, body)

        await asyncio.to_thread(_write_file, file_path, content)
        LOGGER.debug("Wrote message %s to %s", metadata["id"], file_path)
        return file_path

    async def submit(
        self,
        endpoint_id: str,
        *,
        sender: str,
        subject: str,
        body: str,
        message_type: str | None = None,
        reply_to: str | None = None,
        extra_metadata: Mapping[str, Any] | None = None,
    ) -> Path:
        """Drop a new inbound message into an inbox or bidirectional endpoint."""
        endpoint = self._config.require_endpoint(endpoint_id)
        if endpoint.direction == Direction.OUTBOX:
            raise ValueError(
                f"Cannot submit to outbox endpoint: {endpoint_id}. "
                "Use an inbox or bidirectional endpoint."
            )
        metadata: dict[str, Any] = {"from": sender, "subject": subject}
        if extra_metadata:
            metadata.update(extra_metadata)
        if message_type:
            metadata["type"] = message_type
        if reply_to:
            metadata["replyTo"] = reply_to
        return await self.write(endpoint_id, body, metadata)

    async def reply(
        self,
        *,
        to: str,
        subject: str,
        body: str,
        reply_to: str | None = None,
        sender: str = DEFAULT_SENDER,
        endpoint_id: str | None = None,
    ) -> Path:
        """Write a response, by default into the first outbox endpoint."""
        if endpoint_id is None:
            outbox = self._config.default_outbox_endpoint()
            if outbox is None:
                raise UnknownEndpointError("outbox")
            endpoint_id = outbox.id
        metadata: dict[str, Any] = {"to": to, "subject": subject, "from": sender}
        if reply_to:
            metadata["replyTo"] = reply_to
        return await self.write(endpoint_id, body, metadata)


def _filename_stem(message_id: Any) -> str:
    # ids that are not a plain file name would escape the endpoint directory
    candidate = str(message_id)
    if candidate and Path(candidate).name == candidate and candidate not in {".", ".."}:
        return candidate
    return str(uuid.uuid4())


def _write_file(file_path: Path, content: str) -> None:
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(content, encoding="utf-8")


__all__ = ["DEFAULT_SENDER", "MessageWriter"]
