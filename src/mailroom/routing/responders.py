"""Registry of the live agents and workflows messages can be routed to."""

from __future__ import annotations

from collections.abc import Mapping

from ..core.interfaces import AgentResponder, WorkflowResponder


class HandlerNotFoundError(LookupError):
    """Raised when a route names an agent or workflow that is not registered."""


class ResponderRegistry:
    """Name-indexed agents and workflows."""

    def __init__(
        self,
        agents: Mapping[str, AgentResponder] | None = None,
        workflows: Mapping[str, WorkflowResponder] | None = None,
    ) -> None:
        self._agents: dict[str, AgentResponder] = dict(agents or {})
        self._workflows: dict[str, WorkflowResponder] = dict(workflows or {})

    def register_agent(self, agent_id: str, agent: AgentResponder) -> None:
        self._agents[agent_id] = agent

    def register_workflow(self, workflow_id: str, workflow: WorkflowResponder) -> None:
        self._workflows[workflow_id] = workflow

    def get_agent(self, agent_id: str) -> AgentResponder | None:
        return self._agents.get(agent_id)

    def get_workflow(self, workflow_id: str) -> WorkflowResponder | None:
        return self._workflows.get(workflow_id)

    def require_agent(self, agent_id: str) -> AgentResponder:
        agent = self.get_agent(agent_id)
        if agent is None:
            raise HandlerNotFoundError(f"Agent not found: {agent_id}")
        return agent

    def require_workflow(self, workflow_id: str) -> WorkflowResponder:
        workflow = self.get_workflow(workflow_id)
        if workflow is None:
            raise HandlerNotFoundError(f"Workflow not found: {workflow_id}")
        return workflow


__all__ = ["HandlerNotFoundError", "ResponderRegistry"]
