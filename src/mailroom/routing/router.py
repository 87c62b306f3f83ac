"""Priority-ordered routing of messages to agents and workflows.

Precedence is decided by priority alone, not by how specific a route is: a
``*``/``*`` route at priority 10 beats an exact endpoint/type route at 5.
Among routes of equal priority the one declared first wins.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..mailbox.endpoints import MailboxConfig
from .prompts import build_agent_prompt
from .responders import ResponderRegistry

LOGGER = logging.getLogger(__name__)

WILDCARD = "*"
WORKFLOW_FALLBACK_SUMMARY = "Processed via workflow"


class HandlerKind(StrEnum):
    AGENT = "agent"
    WORKFLOW = "workflow"


@dataclass(slots=True, frozen=True)
class HandlerRef:
    """Which responder handles a message."""

    handler_kind: HandlerKind
    handler_id: str


@dataclass(slots=True, frozen=True)
class Route:
    """Rule mapping an (endpoint, type) pair to a handler."""

    handler_kind: HandlerKind
    handler_id: str
    endpoint: str = WILDCARD
    type: str = WILDCARD
    priority: int = 0

    def matches(self, endpoint: str, message_type: str | None) -> bool:
        endpoint_match = self.endpoint in (WILDCARD, endpoint)
        type_match = self.type == WILDCARD or self.type == (message_type or WILDCARD)
        return endpoint_match and type_match

    @property
    def handler(self) -> HandlerRef:
        return HandlerRef(self.handler_kind, self.handler_id)


@dataclass(slots=True, frozen=True)
class RouterConfig:
    """Ordered routes plus the handler used when none of them match."""

    default_handler: HandlerRef
    routes: tuple[Route, ...] = field(default_factory=tuple)


@dataclass(slots=True, frozen=True)
class RoutingResult:
    """Identity of the handler that ran and the text it produced."""

    handler_id: str
    result: str


class MessageRouter:
    """Select a handler for a message and invoke it."""

    def __init__(
        self,
        config: RouterConfig,
        responders: ResponderRegistry,
        *,
        mailbox: MailboxConfig | None = None,
    ) -> None:
        self._config = config
        self._responders = responders
        self._mailbox = mailbox
        # sorted() is stable, so equal priorities keep declaration order
        self._ordered: tuple[Route, ...] = tuple(
            sorted(config.routes, key=lambda route: route.priority, reverse=True)
        )
        if mailbox is not None:
            for route in config.routes:
                if route.endpoint != WILDCARD:
                    mailbox.require_endpoint(route.endpoint)

    @property
    def config(self) -> RouterConfig:
        return self._config

    def find_route(self, endpoint: str, message_type: str | None = None) -> Route | None:
        """Return the highest-priority route matching the endpoint and type."""
        for route in self._ordered:
            if route.matches(endpoint, message_type):
                return route
        return None

    def resolve_handler(
        self, endpoint: str, message_type: str | None = None
    ) -> HandlerRef:
        route = self.find_route(endpoint, message_type)
        return route.handler if route is not None else self._config.default_handler

    async def route_message(
        self, filename: str, endpoint: str, message_type: str | None = None
    ) -> RoutingResult:
        """Dispatch a message to its handler and return the handler's text."""
        if self._mailbox is not None:
            self._mailbox.require_endpoint(endpoint)
        handler = self.resolve_handler(endpoint, message_type)
        LOGGER.debug(
            "Routing %s (endpoint=%s, type=%s) to %s %s",
            filename,
            endpoint,
            message_type,
            handler.handler_kind,
            handler.handler_id,
        )

        if handler.handler_kind == HandlerKind.WORKFLOW:
            workflow = self._responders.require_workflow(handler.handler_id)
            outcome = await workflow.start({"filename": filename, "endpoint": endpoint})
            return RoutingResult(handler.handler_id, _workflow_summary(outcome))

        agent = self._responders.require_agent(handler.handler_id)
        prompt = build_agent_prompt(filename, endpoint, message_type)
        text = await agent.generate(prompt)
        return RoutingResult(handler.handler_id, text)


def _workflow_summary(outcome: Any) -> str:
    if isinstance(outcome, Mapping):
        if "summary" in outcome and outcome["summary"] is not None:
            return str(outcome["summary"])
        return WORKFLOW_FALLBACK_SUMMARY
    summary = getattr(outcome, "summary", None)
    if summary is not None:
        return str(summary)
    return WORKFLOW_FALLBACK_SUMMARY


def default_router_config(routes: Sequence[Route] | None = None) -> RouterConfig:
    """Return the stock routing table used by the CLI."""
    if routes is None:
        routes = (
            Route(
                endpoint="bugs",
                handler_kind=HandlerKind.AGENT,
                handler_id="conciergeAgent",
                priority=10,
            ),
            Route(
                endpoint="feature-requests",
                handler_kind=HandlerKind.AGENT,
                handler_id="conciergeAgent",
                priority=10,
            ),
            Route(
                type="question",
                handler_kind=HandlerKind.WORKFLOW,
                handler_id="messageWorkflow",
                priority=5,
            ),
            Route(
                type="task",
                handler_kind=HandlerKind.WORKFLOW,
                handler_id="messageWorkflow",
                priority=5,
            ),
        )
    return RouterConfig(
        default_handler=HandlerRef(HandlerKind.AGENT, "conciergeAgent"),
        routes=tuple(routes),
    )


__all__ = [
    "HandlerKind",
    "HandlerRef",
    "MessageRouter",
    "Route",
    "RouterConfig",
    "RoutingResult",
    "WILDCARD",
    "WORKFLOW_FALLBACK_SUMMARY",
    "default_router_config",
]
