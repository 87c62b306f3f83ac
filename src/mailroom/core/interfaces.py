"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from .models import MessageStatus, ProcessingStatus


class StatusStore(Protocol):
    """Durable table of per-message processing state."""

    async def upsert(self, status: MessageStatus) -> None:
        """Insert or fully replace the record for ``status.id``."""
        raise NotImplementedError

    async def get(self, message_id: str) -> MessageStatus | None:
        """Return the record for ``message_id`` if one exists."""
        raise NotImplementedError

    async def list(
        self,
        filter_status: ProcessingStatus | None = None,
        limit: int | None = None,
    ) -> list[MessageStatus]:
        """Return records newest first, optionally filtered by status."""
        raise NotImplementedError

    async def clear(self) -> None:
        """Remove every record. Maintenance and tests only."""
        raise NotImplementedError


class AgentResponder(Protocol):
    """A named agent that answers a free-text prompt."""

    async def generate(self, prompt: str) -> str:
        """Return the agent's textual reply to ``prompt``."""
        raise NotImplementedError


class WorkflowResponder(Protocol):
    """A named workflow run with the routed message's coordinates."""

    async def start(self, input_data: Mapping[str, Any]) -> Any:
        """Run the workflow; the result may expose a ``summary``."""
        raise NotImplementedError


__all__ = ["AgentResponder", "StatusStore", "WorkflowResponder"]
