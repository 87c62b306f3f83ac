"""Bundled agent and workflow responders."""

from .concierge import ConciergeAgent
from .llm import LLMError, OllamaAgent
from .prompts import build_reply_prompt
from .workflow import ReplyComposer, ReplyError, ReplyOutcome, ReplyWorkflow

__all__ = [
    "ConciergeAgent",
    "LLMError",
    "OllamaAgent",
    "ReplyComposer",
    "ReplyError",
    "ReplyOutcome",
    "ReplyWorkflow",
    "build_reply_prompt",
]
