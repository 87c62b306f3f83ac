"""Message routing to agents and workflows."""

from .prompts import MessageReference, build_agent_prompt, parse_message_reference
from .responders import HandlerNotFoundError, ResponderRegistry
from .router import (
    WILDCARD,
    WORKFLOW_FALLBACK_SUMMARY,
    HandlerKind,
    HandlerRef,
    MessageRouter,
    Route,
    RouterConfig,
    RoutingResult,
    default_router_config,
)

__all__ = [
    "HandlerKind",
    "HandlerNotFoundError",
    "HandlerRef",
    "MessageReference",
    "MessageRouter",
    "ResponderRegistry",
    "Route",
    "RouterConfig",
    "RoutingResult",
    "WILDCARD",
    "WORKFLOW_FALLBACK_SUMMARY",
    "build_agent_prompt",
    "default_router_config",
    "parse_message_reference",
]
