"""Task agent hosting for the primary agent loop."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog

from agentfork.core.domain.capability_registry import CapabilityRegistry
from agentfork.core.domain.config_schema import TaskAgentSettings
from agentfork.core.domain.models import AgentReturnSignal, AgentTaskRequest, CapabilityOutcome
from agentfork.core.domain.session_runner import SessionCapabilitiesFactory, run_agent_session
from agentfork.core.domain.spawn import detect_spawn_request, format_result
from agentfork.core.interfaces.conversation import ConversationFactoryProtocol
from agentfork.core.interfaces.status import StatusObserverProtocol
from agentfork.core.prompts.task_agent_prompts import (
    TASK_AGENT_BASE_PROMPT,
    build_task_agent_prompt,
)


class AgentHost:
    """
    Run task agents on behalf of a parent agent.

    The parent hands every capability outcome to ``resolve_outcome``. Outcomes
    carrying a spawn request are replaced by the formatted result of the task
    agent; all other outcomes pass through unchanged.
    """

    def __init__(
        self,
        *,
        conversation_factory: ConversationFactoryProtocol,
        base_registry: CapabilityRegistry,
        settings: TaskAgentSettings | None = None,
        session_capabilities: SessionCapabilitiesFactory | None = None,
        base_prompt: str = TASK_AGENT_BASE_PROMPT,
    ) -> None:
        self._conversation_factory = conversation_factory
        self._base_registry = base_registry
        self._settings = settings or TaskAgentSettings()
        self._session_capabilities = session_capabilities
        self._base_prompt = base_prompt
        self._spawned = 0
        self._logger = structlog.get_logger().bind(component="AgentHost")

    @property
    def spawned_agents(self) -> int:
        return self._spawned

    async def handle_spawn(
        self,
        request: AgentTaskRequest,
        history: Sequence[dict[str, Any]],
        status_observer: StatusObserverProtocol | None = None,
        *,
        parent_session_id: str | None = None,
    ) -> AgentReturnSignal:
        """Run one task agent on a fork of ``history``. Never raises."""
        self._spawned += 1
        self._logger.info(
            "task_agent_spawn",
            task=request.task,
            max_turns=request.max_turns,
            timeout_ms=request.timeout_ms,
            parent_session_id=parent_session_id,
        )
        try:
            system_instructions = build_task_agent_prompt(
                request.task,
                request.instructions,
                self._base_prompt,
            )
            return await run_agent_session(
                request,
                history,
                system_instructions,
                status_observer,
                conversation_factory=self._conversation_factory,
                base_registry=self._base_registry,
                settings=self._settings,
                session_capabilities=self._session_capabilities,
                parent_session_id=parent_session_id,
            )
        except Exception as exc:
            self._logger.error(
                "task_agent_spawn_failed",
                task=request.task,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return AgentReturnSignal.failure(f"Agent failed to execute: {exc}")

    async def resolve_outcome(
        self,
        outcome: CapabilityOutcome,
        history: Sequence[dict[str, Any]],
        status_observer: StatusObserverProtocol | None = None,
        *,
        parent_session_id: str | None = None,
    ) -> CapabilityOutcome:
        """Replace a spawn request outcome with the task agent's formatted result."""
        if not outcome.ok:
            return outcome
        request = detect_spawn_request(outcome.text)
        if request is None:
            return outcome

        signal = await self.handle_spawn(
            request,
            history,
            status_observer,
            parent_session_id=parent_session_id,
        )
        return outcome.with_text(format_result(request.task, signal))
