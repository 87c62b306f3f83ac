"""Shared fixtures for mailbox tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from mailroom.mailbox.endpoints import MailboxConfig, default_mailbox_config


@pytest.fixture()
def mailbox(tmp_path: Path) -> MailboxConfig:
    """Default mailbox layout under a temporary root with every folder created."""

    config = default_mailbox_config(tmp_path / "messages")
    for endpoint in config.list_endpoints():
        config.endpoint_path(endpoint.id).mkdir(parents=True)
    return config


def _write_message(directory: Path, name: str, metadata: str, body: str = "Body") -> Path:
    path = directory / name
    path.write_text(f"---\n{metadata}\n---\n\n{body}\n", encoding="utf-8")
    return path


@pytest.fixture()
def write_message() -> Callable[..., Path]:
    """Write a raw message file the way an external producer would."""

    return _write_message
