"""Prompt templates for composing replies to mailbox messages."""

from __future__ import annotations

from textwrap import dedent

from ..mailbox.reader import StoredMessage

# dedented before formatting so multi-line bodies keep their own indentation
_REPLY_TEMPLATE = dedent(
    """
    A {kind} arrived in the "{endpoint}" mailbox.
    Write the reply that should be sent back to the sender. Return only the
    reply body as markdown, without a metadata header.

    Subject: {subject}
    From: {sender}

    Message:
    {body}
    """
).strip()


def build_reply_prompt(message: StoredMessage, *, message_type: str | None = None) -> str:
    """Compose a prompt asking the model to answer ``message`` directly."""
    return _REPLY_TEMPLATE.format(
        kind=message_type or message.metadata.get("type") or "message",
        endpoint=message.endpoint,
        subject=message.subject or "(no subject)",
        sender=message.sender or "(unknown sender)",
        body=message.body or "(empty body)",
    )


__all__ = ["build_reply_prompt"]
