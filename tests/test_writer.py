"""Tests for the message writer."""

from __future__ import annotations

import uuid

import pytest

from mailroom.core.datetime_utils import parse_datetime
from mailroom.mailbox.codec import parse_document
from mailroom.mailbox.endpoints import MailboxConfig, UnknownEndpointError
from mailroom.mailbox.writer import MessageWriter


async def test_write_generates_id_and_timestamp(mailbox: MailboxConfig) -> None:
    writer = MessageWriter(mailbox)
    path = await writer.write("inbox", "Hello", {"from": "alice"})

    assert path.parent == mailbox.endpoint_path("inbox")
    document = parse_document(path.read_text(encoding="utf-8"))
    assert list(document.metadata) == ["id", "timestamp", "from"]
    assert path.name == f"{document.metadata['id']}.md"
    uuid.UUID(document.metadata["id"])
    assert parse_datetime(document.metadata["timestamp"]).tzinfo is not None
    assert document.body == "Hello"


async def test_caller_metadata_overrides_generated_id(mailbox: MailboxConfig) -> None:
    writer = MessageWriter(mailbox)
    path = await writer.write("inbox", "Hi", {"id": "custom"})

    assert path.name == "custom.md"
    assert parse_document(path.read_text(encoding="utf-8")).metadata["id"] == "custom"


async def test_id_with_path_separators_does_not_escape_endpoint(
    mailbox: MailboxConfig,
) -> None:
    writer = MessageWriter(mailbox)
    path = await writer.write("inbox", "Hi", {"id": "../escape"})

    assert path.parent == mailbox.endpoint_path("inbox")
    assert parse_document(path.read_text(encoding="utf-8")).metadata["id"] == "../escape"


async def test_explicit_filename_is_used(mailbox: MailboxConfig) -> None:
    writer = MessageWriter(mailbox)
    path = await writer.write("outbox", "Hi", filename="note.md")
    assert path == mailbox.endpoint_path("outbox") / "note.md"


async def test_write_creates_missing_directory(mailbox: MailboxConfig) -> None:
    directory = mailbox.endpoint_path("feature-requests")
    directory.rmdir()
    path = await MessageWriter(mailbox).write("feature-requests", "Idea")
    assert path.exists()


async def test_unknown_endpoint_writes_nothing(mailbox: MailboxConfig) -> None:
    writer = MessageWriter(mailbox)
    with pytest.raises(UnknownEndpointError):
        await writer.write("nowhere", "Hi")
    assert not (mailbox.root_path / "nowhere").exists()


async def test_submit_refuses_outbox(mailbox: MailboxConfig) -> None:
    writer = MessageWriter(mailbox)
    with pytest.raises(ValueError, match="Cannot submit to outbox endpoint"):
        await writer.submit("outbox", sender="bob", subject="Hi", body="text")
    assert list(mailbox.endpoint_path("outbox").iterdir()) == []


async def test_submit_records_routing_metadata(mailbox: MailboxConfig) -> None:
    writer = MessageWriter(mailbox)
    path = await writer.submit(
        "bugs",
        sender="bob",
        subject="Crash",
        body="It crashed",
        message_type="question",
        reply_to="m-0",
        extra_metadata={"severity": "high"},
    )
    metadata = parse_document(path.read_text(encoding="utf-8")).metadata
    assert metadata["from"] == "bob"
    assert metadata["subject"] == "Crash"
    assert metadata["type"] == "question"
    assert metadata["replyTo"] == "m-0"
    assert metadata["severity"] == "high"


async def test_reply_defaults_to_outbox(mailbox: MailboxConfig) -> None:
    writer = MessageWriter(mailbox)
    path = await writer.reply(to="bob", subject="Re: Crash", body="Fixed", reply_to="m-1")

    assert path.parent == mailbox.endpoint_path("outbox")
    metadata = parse_document(path.read_text(encoding="utf-8")).metadata
    assert metadata["to"] == "bob"
    assert metadata["from"] == "concierge-agent"
    assert metadata["replyTo"] == "m-1"
