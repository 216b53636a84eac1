"""
Orchestrator Agent

The primary agent loop. The orchestrator reads the mission, delegates work
through the ``task_agent`` capability and answers the user once a turn comes
back with content and no capability calls.

Every capability outcome passes through ``AgentHost.resolve_outcome`` before
it is sent back, so a spawn request is run as a task agent (on a fork of the
orchestrator's current history) and replaced by the formatted result.
"""

from __future__ import annotations

import uuid

import structlog

from agentfork.application.agent_host import AgentHost
from agentfork.core.domain.cancellation import CancellationToken
from agentfork.core.domain.capability_registry import CapabilityRegistry
from agentfork.core.domain.enums import ExecutionStatus, StatusKind
from agentfork.core.domain.errors import TransportError
from agentfork.core.domain.models import ExecutionResult, TurnInput
from agentfork.core.domain.session_components.capability_dispatcher import (
    CapabilityDispatcher,
)
from agentfork.core.domain.session_components.status_reporter import (
    StatusReporter,
    truncate_preview,
)
from agentfork.core.domain.session_components.turn_driver import TurnDriver
from agentfork.core.interfaces.conversation import ConversationFactoryProtocol
from agentfork.core.interfaces.status import StatusObserverProtocol
from agentfork.core.prompts.task_agent_prompts import ORCHESTRATOR_PROMPT

EMPTY_RESPONSE_NUDGE = "[System: Your response was empty. Please provide an answer or use a tool.]"


def build_primary_session_id() -> str:
    return f"primary-{uuid.uuid4().hex[:8]}"


class OrchestratorAgent:
    """
    Primary agent with a restricted registry and task agent delegation.

    Args:
        conversation_factory: Creates the orchestrator conversation.
        registry: Capabilities of the orchestrator (read-only plus ``task_agent``).
        host: Runs task agents for spawn requests.
        max_steps: Turn budget of one mission.
        system_prompt: System instructions of the orchestrator.
        max_parallel: Concurrent capability calls per turn.
        status_observer: Optional sink for status events of all agents.
    """

    def __init__(
        self,
        *,
        conversation_factory: ConversationFactoryProtocol,
        registry: CapabilityRegistry,
        host: AgentHost,
        max_steps: int = 30,
        system_prompt: str = ORCHESTRATOR_PROMPT,
        max_parallel: int = 1,
        status_observer: StatusObserverProtocol | None = None,
        turn_driver: TurnDriver | None = None,
    ) -> None:
        self.max_steps = max_steps
        self._conversation_factory = conversation_factory
        self._registry = registry
        self._host = host
        self._system_prompt = system_prompt
        self._max_parallel = max_parallel
        self._status_observer = status_observer
        self._turn_driver = turn_driver or TurnDriver()
        self.logger = structlog.get_logger().bind(component="OrchestratorAgent")

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    async def execute(self, mission: str, session_id: str | None = None) -> ExecutionResult:
        """
        Run the mission until the orchestrator gives a final answer.

        Args:
            mission: User's mission description.
            session_id: Identifier for logs and status events (generated if omitted).

        Returns:
            ExecutionResult; ``failed`` when ``max_steps`` is exceeded.
        """
        session_id = session_id or build_primary_session_id()
        spawned_before = self._host.spawned_agents
        reporter = StatusReporter(self._status_observer, session_id=session_id, logger=self.logger)
        dispatcher = CapabilityDispatcher(
            reporter=reporter,
            max_parallel=self._max_parallel,
            logger=self.logger,
        )
        conversation = self._conversation_factory.create(
            [],
            self._system_prompt,
            self._registry.all(),
        )
        cancellation = CancellationToken()

        self.logger.info("execute_start", session_id=session_id, mission=mission[:100])
        reporter.emit(StatusKind.START, f"Starting mission: {truncate_preview(mission, 100)}")

        message = TurnInput(text=mission)
        final_message = ""
        step = 0
        while step < self.max_steps:
            step += 1
            try:
                turn = await self._turn_driver.run(conversation, message, cancellation)
            except TransportError as exc:
                self.logger.error("llm_call_failed", session_id=session_id, step=step, error=exc.message)
                reporter.emit(StatusKind.ERROR, f"Error: {truncate_preview(exc.message, 150)}")
                message = TurnInput(text=f"[System Error: {exc.message}. Please try again.]")
                continue

            if not turn.has_requests:
                if turn.content.strip():
                    final_message = turn.content
                    self.logger.info("final_answer_received", session_id=session_id, step=step)
                    break
                self.logger.warning("empty_response", session_id=session_id, step=step)
                message = TurnInput(text=EMPTY_RESPONSE_NUDGE)
                continue

            self.logger.info(
                "capability_calls_received",
                session_id=session_id,
                step=step,
                capabilities=[request.name for request in turn.requests],
            )
            outcomes = await dispatcher.dispatch(self._registry, turn.requests, cancellation)
            resolved = []
            for outcome in outcomes:
                resolved.append(
                    await self._host.resolve_outcome(
                        outcome,
                        conversation.history,
                        self._status_observer,
                        parent_session_id=session_id,
                    )
                )
            message = TurnInput(outcomes=tuple(resolved))

        if final_message:
            status = ExecutionStatus.COMPLETED
        else:
            status = ExecutionStatus.FAILED
            final_message = f"Exceeded maximum steps ({self.max_steps})"
            reporter.emit(StatusKind.ERROR, final_message)

        spawned = self._host.spawned_agents - spawned_before
        reporter.emit(StatusKind.COMPLETION, f"Mission {status.value}")
        self.logger.info(
            "execute_complete",
            session_id=session_id,
            status=status.value,
            steps=step,
            spawned_agents=spawned,
        )
        return ExecutionResult(
            session_id=session_id,
            status=status,
            final_message=final_message,
            steps=step,
            spawned_agents=spawned,
        )
