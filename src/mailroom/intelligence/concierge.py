"""Agent responder that answers routed messages in place."""

from __future__ import annotations

import logging

from ..core.interfaces import AgentResponder
from ..routing.prompts import parse_message_reference
from .workflow import ReplyComposer

LOGGER = logging.getLogger(__name__)


class ConciergeAgent:
    """Answer routed messages by replying to them in the outbox.

    Prompts that carry a message reference are handled with the reply
    pipeline; anything else is passed to the underlying model unchanged.
    """

    def __init__(self, llm: AgentResponder, composer: ReplyComposer) -> None:
        self._llm = llm
        self._composer = composer

    async def generate(self, prompt: str) -> str:
        reference = parse_message_reference(prompt)
        if reference is None:
            LOGGER.debug("Prompt carries no message reference, asking the model")
            return await self._llm.generate(prompt)
        outcome = await self._composer.compose(
            reference.filename, reference.endpoint, reference.message_type
        )
        return outcome.reply_text


__all__ = ["ConciergeAgent"]
