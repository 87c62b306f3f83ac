"""Prompt text handed to agents when a message is routed to them."""

from __future__ import annotations

import re
from dataclasses import dataclass

_REFERENCE_PATTERN = re.compile(
    r"filename: (?P<filename>.+?) from endpoint: (?P<endpoint>[^\s(]+?)"
    r"(?: \(type: (?P<type>[^)]+)\))?\.(?=\s|$)"
)


@dataclass(slots=True, frozen=True)
class MessageReference:
    """Coordinates of a message as carried in an agent prompt."""

    filename: str
    endpoint: str
    message_type: str | None = None


def build_agent_prompt(filename: str, endpoint: str, message_type: str | None) -> str:
    """Return the instruction asking an agent to handle one message file."""
    type_info = f" (type: {message_type})" if message_type else ""
    return (
        f"Process the message with filename: {filename} from endpoint: "
        f"{endpoint}{type_info}. Read it and respond appropriately."
    )


def parse_message_reference(prompt: str) -> MessageReference | None:
    """Recover the message coordinates from a prompt built above, if present."""
    match = _REFERENCE_PATTERN.search(prompt)
    if match is None:
        return None
    return MessageReference(
        filename=match.group("filename"),
        endpoint=match.group("endpoint"),
        message_type=match.group("type"),
    )


__all__ = ["MessageReference", "build_agent_prompt", "parse_message_reference"]
