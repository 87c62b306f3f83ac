"""Read a routed message, ask an agent for an answer and post the reply."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..core.interfaces import AgentResponder
from ..mailbox.reader import MailboxReader
from ..mailbox.writer import MessageWriter
from .prompts import build_reply_prompt

LOGGER = logging.getLogger(__name__)

SUMMARY_LIMIT = 200


class ReplyError(RuntimeError):
    """Raised when a reply cannot be produced for a message."""


@dataclass(slots=True, frozen=True)
class ReplyOutcome:
    """Result of answering one message."""

    response_id: str
    endpoint: str
    reply_text: str
    summary: str


class ReplyComposer:
    """Shared read -> generate -> write pipeline for agents and workflows."""

    def __init__(
        self,
        agent: AgentResponder,
        reader: MailboxReader,
        writer: MessageWriter,
        *,
        outbox_id: str | None = None,
    ) -> None:
        self._agent = agent
        self._reader = reader
        self._writer = writer
        self._outbox_id = outbox_id

    async def compose(
        self, filename: str, endpoint: str, message_type: str | None = None
    ) -> ReplyOutcome:
        """Answer the message ``filename`` in ``endpoint`` and return the outcome."""
        message = await self._reader.read_message(endpoint, filename)
        prompt = build_reply_prompt(message, message_type=message_type)
        reply_text = (await self._agent.generate(prompt)).strip()
        if not reply_text:
            raise ReplyError(f"Agent returned an empty reply for {filename}")

        outbox_id = self._resolve_outbox()
        path = await self._writer.reply(
            to=message.sender or "unknown",
            subject=_reply_subject(message.subject),
            body=reply_text,
            reply_to=message.id,
            endpoint_id=outbox_id,
        )
        LOGGER.info("Replied to %s with %s", message.id, path.name)
        return ReplyOutcome(
            response_id=path.stem,
            endpoint=outbox_id,
            reply_text=reply_text,
            summary=_summarize(reply_text),
        )

    def _resolve_outbox(self) -> str:
        if self._outbox_id is not None:
            return self._outbox_id
        outbox = self._writer.config.default_outbox_endpoint()
        if outbox is None:
            raise ReplyError("No outbox endpoint is configured for replies")
        return outbox.id


class ReplyWorkflow:
    """Workflow responder that answers the routed message in the outbox."""

    def __init__(self, composer: ReplyComposer) -> None:
        self._composer = composer

    async def start(self, input_data: Mapping[str, Any]) -> dict[str, Any]:
        filename = input_data.get("filename")
        endpoint = input_data.get("endpoint")
        if not filename or not endpoint:
            raise ValueError("Workflow input requires 'filename' and 'endpoint'")
        outcome = await self._composer.compose(str(filename), str(endpoint))
        return {
            "processed": True,
            "response_id": outcome.response_id,
            "summary": outcome.summary,
            "endpoint": outcome.endpoint,
        }


def _reply_subject(subject: str | None) -> str:
    if not subject:
        return "Re: (no subject)"
    if subject.lower().startswith("re:"):
        return subject
    return f"Re: {subject}"


def _summarize(text: str) -> str:
    first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
    if len(first_line) <= SUMMARY_LIMIT:
        return first_line
    return first_line[: SUMMARY_LIMIT - 3].rstrip() + "..."


__all__ = ["ReplyComposer", "ReplyError", "ReplyOutcome", "ReplyWorkflow"]
