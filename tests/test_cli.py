"""Tests for the command-line interface."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from mailroom.cli import build_parser, execute
from mailroom.core.config import AppSettings, MailboxSettings, StorageSettings
from mailroom.core.models import MessageStatus, ProcessingStatus
from mailroom.mailbox.codec import parse_document
from mailroom.storage import SqliteStatusStore


@pytest.fixture()
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        mailbox=MailboxSettings(root_path=tmp_path / "messages"),
        storage=StorageSettings(db_path=tmp_path / "data" / "status.db"),
    )


def test_parser_defaults_to_info() -> None:
    args = build_parser().parse_args([])
    assert args.command == "info"
    assert args.endpoint == "inbox"
    assert args.status == "all"


def test_info_lists_endpoints(
    settings: AppSettings, capsys: pytest.CaptureFixture[str]
) -> None:
    assert execute(build_parser().parse_args(["info"]), settings) == 0
    output = capsys.readouterr().out
    assert str(settings.mailbox.resolve_root()) in output
    assert "feature-requests" in output
    assert "severity" in output


def test_send_writes_message(
    settings: AppSettings, capsys: pytest.CaptureFixture[str]
) -> None:
    args = build_parser().parse_args(
        [
            "send",
            "--endpoint",
            "bugs",
            "--from",
            "erin",
            "--subject",
            "Broken",
            "--body",
            "Steps to reproduce",
            "--severity",
            "low",
        ]
    )

    assert execute(args, settings) == 0

    bugs = settings.mailbox.resolve_root() / "bugs"
    (path,) = list(bugs.glob("*.md"))
    document = parse_document(path.read_text(encoding="utf-8"))
    assert document.metadata["from"] == "erin"
    assert document.metadata["severity"] == "low"
    assert document.body == "Steps to reproduce"
    assert str(path) in capsys.readouterr().out


def test_send_to_outbox_fails(
    settings: AppSettings, capsys: pytest.CaptureFixture[str]
) -> None:
    args = build_parser().parse_args(["send", "--endpoint", "outbox", "--body", "x"])
    assert execute(args, settings) == 1
    assert "Cannot submit to outbox endpoint" in capsys.readouterr().out


def test_statuses_lists_records(
    settings: AppSettings, capsys: pytest.CaptureFixture[str]
) -> None:
    completed = (
        MessageStatus.pending("m-1", "inbox", "m-1.md")
        .advance(ProcessingStatus.PROCESSING)
        .advance(ProcessingStatus.COMPLETED, summary="replied")
    )

    async def seed() -> None:
        with SqliteStatusStore(settings.storage) as store:
            await store.upsert(completed)

    asyncio.run(seed())

    args = build_parser().parse_args(["statuses", "--status", "completed"])
    assert execute(args, settings) == 0
    output = capsys.readouterr().out
    assert "m-1.md" in output
    assert "replied" in output

    execute(build_parser().parse_args(["statuses", "--status", "failed"]), settings)
    assert "No message statuses found." in capsys.readouterr().out


def test_messages_lists_endpoint(
    settings: AppSettings, capsys: pytest.CaptureFixture[str]
) -> None:
    execute(
        build_parser().parse_args(
            ["send", "--from", "frank", "--subject", "Hello", "--body", "Hi"]
        ),
        settings,
    )
    capsys.readouterr()

    assert execute(build_parser().parse_args(["messages"]), settings) == 0
    output = capsys.readouterr().out
    assert "frank" in output
    assert "Hello" in output


def test_messages_unknown_endpoint(
    settings: AppSettings, capsys: pytest.CaptureFixture[str]
) -> None:
    args = build_parser().parse_args(["messages", "--endpoint", "nowhere"])
    assert execute(args, settings) == 1
    assert "Endpoint not found: nowhere" in capsys.readouterr().out
