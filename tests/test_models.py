"""Tests for message status transitions."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from mailroom.core.models import (
    Message,
    MessageStatus,
    ProcessingStatus,
    StatusTransitionError,
)


def test_status_advances_forward_and_stamps_terminal_time() -> None:
    finished_at = datetime(2025, 1, 2, 3, 4, tzinfo=UTC)
    pending = MessageStatus.pending("m-1", "inbox", "m-1.md")
    processing = pending.advance(ProcessingStatus.PROCESSING)
    completed = processing.advance(
        ProcessingStatus.COMPLETED, summary="done", error="ignored", at=finished_at
    )

    assert pending.status is ProcessingStatus.PENDING
    assert processing.processed_at is None
    assert completed.status is ProcessingStatus.COMPLETED
    assert completed.processed_at == finished_at
    assert completed.summary == "done"
    assert completed.error is None
    assert completed.created_at == pending.created_at


def test_failed_status_keeps_error_only() -> None:
    processing = MessageStatus.pending("m-1", "inbox", "m-1.md").advance(
        ProcessingStatus.PROCESSING
    )
    failed = processing.advance(ProcessingStatus.FAILED, error="boom", summary="nope")
    assert failed.error == "boom"
    assert failed.summary is None
    assert failed.processed_at is not None


@pytest.mark.parametrize(
    ("start", "target"),
    [
        (ProcessingStatus.PENDING, ProcessingStatus.COMPLETED),
        (ProcessingStatus.PENDING, ProcessingStatus.FAILED),
        (ProcessingStatus.COMPLETED, ProcessingStatus.PROCESSING),
        (ProcessingStatus.FAILED, ProcessingStatus.PENDING),
    ],
)
def test_status_rejects_backward_or_skipped_moves(
    start: ProcessingStatus, target: ProcessingStatus
) -> None:
    status = MessageStatus(id="m", status=start, endpoint="inbox", filename="m.md")
    with pytest.raises(StatusTransitionError):
        status.advance(target)


def test_message_type_ignores_blank_values() -> None:
    now = datetime.now(UTC)
    message = Message(
        id="m",
        file_path=Path("/box/inbox/m.md"),
        endpoint_id="inbox",
        metadata={"type": ""},
        body="",
        created_at=now,
        modified_at=now,
    )
    assert message.message_type is None
    assert message.filename == "m.md"
