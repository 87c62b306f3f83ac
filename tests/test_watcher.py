"""Tests for the folder watcher against a real temporary directory."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from mailroom.core.models import (
    MessageCreated,
    MessageDeleted,
    MessageUpdated,
    ParseError,
    WatcherFailure,
)
from mailroom.ingestion.watcher import FolderWatcher, WatcherItem, is_container_environment
from mailroom.mailbox.endpoints import (
    Direction,
    Endpoint,
    FieldType,
    MailboxConfig,
    MetadataField,
)
from mailroom.mailbox.writer import MessageWriter

POLL_MS = 50


def _fast_mailbox(root: Path) -> MailboxConfig:
    config = MailboxConfig(
        root_path=root,
        endpoints=(
            Endpoint(id="inbox", path="inbox", poll_interval_ms=POLL_MS),
            Endpoint(
                id="outbox",
                path="outbox",
                direction=Direction.OUTBOX,
                poll_interval_ms=POLL_MS,
            ),
            Endpoint(
                id="bugs",
                path="bugs",
                poll_interval_ms=POLL_MS,
                required_metadata=(
                    MetadataField(name="severity", type=FieldType.STRING, required=True),
                ),
            ),
        ),
    )
    for endpoint in config.endpoints:
        config.endpoint_path(endpoint.id).mkdir(parents=True, exist_ok=True)
    return config


async def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.02)


class _Harness:
    def __init__(self, config: MailboxConfig) -> None:
        self.config = config
        self.items: list[WatcherItem] = []
        self.watcher = FolderWatcher(
            config,
            force_polling=True,
            stability_threshold=0.05,
            stability_poll_interval=0.02,
        )
        self.watcher.on(self.items.append)

    def of_type(self, kind: type) -> list:
        return [item for item in self.items if isinstance(item, kind)]


@pytest.fixture()
async def harness(tmp_path: Path):
    harness = _Harness(_fast_mailbox(tmp_path / "messages"))
    await harness.watcher.start()
    try:
        yield harness
    finally:
        await harness.watcher.stop()


def _write(path: Path, metadata: str, body: str = "Body") -> None:
    path.write_text(f"---\n{metadata}\n---\n\n{body}\n", encoding="utf-8")


async def test_new_file_emits_created(harness: _Harness) -> None:
    inbox = harness.config.endpoint_path("inbox")
    _write(inbox / "hello.md", 'id: "m-1"\ntimestamp: "2025-01-01T00:00:00Z"\ntype: question')

    await _wait_for(lambda: harness.of_type(MessageCreated))

    (event,) = harness.of_type(MessageCreated)
    assert event.message.id == "m-1"
    assert event.message.endpoint_id == "inbox"
    assert event.message.file_path == inbox / "hello.md"
    assert event.message.message_type == "question"
    assert event.message.body == "Body"


async def test_missing_required_field_emits_parse_error(harness: _Harness) -> None:
    bugs = harness.config.endpoint_path("bugs")
    _write(bugs / "crash.md", 'id: "b-1"\ntimestamp: "2025-01-01T00:00:00Z"')

    await _wait_for(lambda: harness.of_type(ParseError))

    (error,) = harness.of_type(ParseError)
    assert error.file_path == bugs / "crash.md"
    assert "severity" in error.reason
    assert not harness.of_type(MessageCreated)


async def test_blank_id_falls_back_to_relative_path(harness: _Harness) -> None:
    inbox = harness.config.endpoint_path("inbox")
    _write(inbox / "anon.md", 'id: ""\ntimestamp: "2025-01-01T00:00:00Z"')

    await _wait_for(lambda: harness.of_type(MessageCreated))

    assert harness.of_type(MessageCreated)[0].message.id == "inbox/anon.md"


async def test_non_matching_files_and_outbox_are_ignored(harness: _Harness) -> None:
    assert "outbox" not in harness.watcher.watched_endpoints
    _write(harness.config.endpoint_path("outbox") / "reply.md", 'id: "r"\ntimestamp: "t"')
    _write(harness.config.endpoint_path("inbox") / "notes.txt", 'id: "n"\ntimestamp: "t"')
    _write(harness.config.endpoint_path("inbox") / "real.md", 'id: "x"\ntimestamp: "t"')

    await _wait_for(lambda: harness.of_type(MessageCreated))
    await asyncio.sleep(0.3)

    assert [e.message.id for e in harness.of_type(MessageCreated)] == ["x"]
    assert len(harness.items) == 1


async def test_modifying_a_known_file_emits_updated_once(harness: _Harness) -> None:
    path = harness.config.endpoint_path("inbox") / "draft.md"
    _write(path, 'id: "d"\ntimestamp: "t"', body="first")
    await _wait_for(lambda: harness.of_type(MessageCreated))

    _write(path, 'id: "d"\ntimestamp: "t"', body="second, and longer")
    await _wait_for(lambda: harness.of_type(MessageUpdated))
    await asyncio.sleep(0.3)

    assert len(harness.of_type(MessageCreated)) == 1
    (updated,) = harness.of_type(MessageUpdated)
    assert updated.message.body == "second, and longer"


async def test_deleting_a_file_emits_deleted(harness: _Harness) -> None:
    path = harness.config.endpoint_path("inbox") / "gone.md"
    _write(path, 'id: "g"\ntimestamp: "t"')
    await _wait_for(lambda: harness.of_type(MessageCreated))

    path.unlink()
    await _wait_for(lambda: harness.of_type(MessageDeleted))

    (deleted,) = harness.of_type(MessageDeleted)
    assert deleted.file_path == path
    assert deleted.endpoint_id == "inbox"


async def test_files_present_at_start_are_announced_as_created(tmp_path: Path) -> None:
    config = _fast_mailbox(tmp_path / "messages")
    waiting = config.endpoint_path("inbox") / "old.md"
    _write(waiting, 'id: "old"\ntimestamp: "t"', body="left while down")
    _write(config.endpoint_path("outbox") / "sent.md", 'id: "sent"\ntimestamp: "t"')
    harness = _Harness(config)
    await harness.watcher.start()
    try:
        await _wait_for(lambda: harness.of_type(MessageCreated))
        await asyncio.sleep(0.3)
        (created,) = harness.of_type(MessageCreated)
        assert created.message.id == "old"
        assert created.message.file_path == waiting
        assert created.message.body == "left while down"

        _write(waiting, 'id: "old"\ntimestamp: "t"', body="edited after start")
        await _wait_for(lambda: harness.of_type(MessageUpdated))
        assert len(harness.of_type(MessageCreated)) == 1
    finally:
        await harness.watcher.stop()


async def test_missing_directory_reports_failure(tmp_path: Path) -> None:
    config = _fast_mailbox(tmp_path / "messages")
    config.endpoint_path("bugs").rmdir()
    harness = _Harness(config)
    await harness.watcher.start()
    try:
        await _wait_for(lambda: harness.of_type(WatcherFailure))
        (failure,) = harness.of_type(WatcherFailure)
        assert failure.endpoint_id == "bugs"
        assert harness.watcher.watched_endpoints == ("inbox",)
    finally:
        await harness.watcher.stop()


async def test_writer_output_is_picked_up(harness: _Harness) -> None:
    path = await MessageWriter(harness.config).write("inbox", "Ping", {"from": "tester"})

    await _wait_for(lambda: harness.of_type(MessageCreated))

    message = harness.of_type(MessageCreated)[0].message
    assert message.file_path == path
    assert message.id == path.stem
    assert message.metadata["from"] == "tester"
    assert message.body == "Ping"


async def test_stop_is_idempotent_and_restartable(tmp_path: Path) -> None:
    harness = _Harness(_fast_mailbox(tmp_path / "messages"))
    await harness.watcher.start()
    await harness.watcher.stop()
    await harness.watcher.stop()
    assert not harness.watcher.is_running

    await harness.watcher.start()
    try:
        _write(harness.config.endpoint_path("inbox") / "again.md", 'id: "a"\ntimestamp: "t"')
        await _wait_for(lambda: harness.of_type(MessageCreated))
    finally:
        await harness.watcher.stop()


def test_second_consumer_rejected(tmp_path: Path) -> None:
    watcher = FolderWatcher(_fast_mailbox(tmp_path), force_polling=True)
    watcher.on(lambda item: None)
    with pytest.raises(RuntimeError):
        watcher.on(lambda item: None)


@pytest.mark.parametrize(
    ("environ", "expected"),
    [
        ({}, False),
        ({"CONTAINER": "true"}, True),
        ({"DOCKER_CONTAINER": "true"}, True),
        ({"REMOTE_CONTAINERS": "true"}, True),
        ({"REMOTE_CONTAINERS": "1"}, False),
        ({"REMOTE_CONTAINERS_IPC": "/tmp/socket"}, True),
    ],
)
def test_container_detection(tmp_path: Path, environ: dict, expected: bool) -> None:
    assert is_container_environment(environ, dockerenv=tmp_path / "missing") is expected


def test_dockerenv_marker_counts_as_container(tmp_path: Path) -> None:
    marker = tmp_path / ".dockerenv"
    marker.touch()
    assert is_container_environment({}, dockerenv=marker) is True


async def test_missing_id_falls_back_when_not_required(tmp_path: Path) -> None:
    config = MailboxConfig(
        root_path=tmp_path / "messages",
        endpoints=(Endpoint(id="inbox", path="inbox", poll_interval_ms=POLL_MS),),
        default_metadata=(),
    )
    config.endpoint_path("inbox").mkdir(parents=True)
    harness = _Harness(config)
    await harness.watcher.start()
    try:
        _write(config.endpoint_path("inbox") / "loose.md", "from: zoe")
        await _wait_for(lambda: harness.of_type(MessageCreated))
        assert harness.of_type(MessageCreated)[0].message.id == "inbox/loose.md"
    finally:
        await harness.watcher.stop()
