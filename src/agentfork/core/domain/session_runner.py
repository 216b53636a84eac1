"""
Agent Session Runner

Runs one task agent session to completion:

    INIT -> RUNNING -> (RETURNED | EXHAUSTED) -> SUMMARIZING -> (RETURNED | FAILED)

The turn loop runs as its own task and is raced against the session
deadline. When the deadline wins, the loop task is cancelled, the session's
cancellation token is cancelled and the session gets exactly one
summarization turn with no further time limit. ``run`` never raises for
session failures; every outcome is an ``AgentReturnSignal``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from agentfork.core.capabilities.return_from_task import ReturnFromTaskCapability
from agentfork.core.domain.agent_session import (
    SPAWN_CAPABILITY_NAME,
    AgentSession,
    build_task_session_id,
    fork_history,
)
from agentfork.core.domain.cancellation import CancellationToken
from agentfork.core.domain.capability_registry import CapabilityRegistry
from agentfork.core.domain.config_schema import TaskAgentSettings
from agentfork.core.domain.control_messages import decode_return_signal
from agentfork.core.domain.enums import SessionState, StatusKind
from agentfork.core.domain.errors import (
    SessionConstructionError,
    SessionInterruptedError,
    SummarizationError,
)
from agentfork.core.domain.models import (
    AgentReturnSignal,
    AgentTaskRequest,
    CapabilityOutcome,
    TurnInput,
    TurnResult,
)
from agentfork.core.domain.session_components.capability_dispatcher import (
    CapabilityDispatcher,
)
from agentfork.core.domain.session_components.status_reporter import (
    StatusReporter,
    truncate_preview,
)
from agentfork.core.domain.session_components.turn_driver import TurnDriver
from agentfork.core.interfaces.capabilities import CapabilityProtocol
from agentfork.core.interfaces.conversation import ConversationFactoryProtocol
from agentfork.core.interfaces.logging import LoggerProtocol
from agentfork.core.interfaces.status import StatusObserverProtocol
from agentfork.core.prompts.task_agent_prompts import (
    CONTINUE_NUDGE,
    CONTINUE_OR_RETURN_NUDGE,
    build_initial_message,
    build_summary_directive,
    build_time_warning,
)

THINKING_PREVIEW_CHARS = 150
DEFAULT_FAILURE_DESCRIPTION = (
    "Agent failed to complete task within time limit and did not provide a summary."
)

SessionCapabilitiesFactory = Callable[[], Sequence[CapabilityProtocol]]


def find_return_signal(outcomes: Sequence[CapabilityOutcome]) -> AgentReturnSignal | None:
    """First return signal among successful outcomes, in request order."""
    for outcome in outcomes:
        if not outcome.ok:
            continue
        signal = decode_return_signal(outcome.text)
        if signal is not None:
            return signal
    return None


@dataclass
class SessionReport:
    """Terminal signal plus the bookkeeping of the session that produced it."""

    signal: AgentReturnSignal
    session_id: str
    state: SessionState
    state_history: list[SessionState] = field(default_factory=list)
    turns_taken: int = 0
    deadline_hit: bool = False


class AgentSessionRunner:
    """
    Run bounded task agent sessions.

    Args:
        conversation_factory: Creates the forked conversation of a session.
        base_registry: Registry the session registry is derived from. The
            spawn capability is removed and ``return_from_task`` added.
        settings: Task agent limits (warning lead, dispatch parallelism).
        session_capabilities: Builds capabilities that hold per-session
            state (such as a task tracker); called once per session.
        turn_driver: Runs single turns.
        logger: Optional logger (defaults to a bound structlog logger).
        clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        *,
        conversation_factory: ConversationFactoryProtocol,
        base_registry: CapabilityRegistry,
        settings: TaskAgentSettings | None = None,
        session_capabilities: SessionCapabilitiesFactory | None = None,
        turn_driver: TurnDriver | None = None,
        logger: LoggerProtocol | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._conversation_factory = conversation_factory
        self._base_registry = base_registry
        self._settings = settings or TaskAgentSettings()
        self._session_capabilities = session_capabilities
        self._turn_driver = turn_driver or TurnDriver()
        self._logger = logger or structlog.get_logger(__name__).bind(component="AgentSessionRunner")
        self._clock = clock

    async def run(
        self,
        request: AgentTaskRequest,
        forked_history: Sequence[dict[str, Any]],
        system_instructions: str,
        status_observer: StatusObserverProtocol | None = None,
        *,
        parent_session_id: str | None = None,
    ) -> AgentReturnSignal:
        """Run a session and return its terminal signal. Never raises."""
        report = await self.execute(
            request,
            forked_history,
            system_instructions,
            status_observer,
            parent_session_id=parent_session_id,
        )
        return report.signal

    async def execute(
        self,
        request: AgentTaskRequest,
        forked_history: Sequence[dict[str, Any]],
        system_instructions: str,
        status_observer: StatusObserverProtocol | None = None,
        *,
        parent_session_id: str | None = None,
    ) -> SessionReport:
        """Run a session and return the signal with the session bookkeeping."""
        session_id = build_task_session_id(parent_session_id)
        reporter = StatusReporter(status_observer, session_id=session_id, logger=self._logger)
        session: AgentSession | None = None
        deadline_hit = False

        try:
            session = self._build_session(session_id, request, forked_history, system_instructions)
            self._logger.info(
                "task_agent_started",
                session_id=session_id,
                task=request.task,
                max_turns=request.max_turns,
                timeout_ms=request.timeout_ms,
            )
            reporter.emit(StatusKind.START, f"Starting task: {request.task}")

            dispatcher = CapabilityDispatcher(
                reporter=reporter,
                max_parallel=self._settings.max_parallel_calls,
                logger=self._logger,
            )
            signal, deadline_hit = await self._race(session, dispatcher, reporter)
            if signal is None:
                signal = await self._summarize(session, dispatcher, reporter, deadline_hit)
            elif session.state != SessionState.RETURNED:
                session.transition(SessionState.RETURNED)
        except Exception as exc:
            message = exc.message if isinstance(exc, SessionConstructionError) else str(exc)
            self._logger.error(
                "task_agent_failed",
                session_id=session_id,
                error=message,
                error_type=type(exc).__name__,
            )
            reporter.emit(StatusKind.ERROR, f"Error: {message}")
            signal = AgentReturnSignal.failure(f"Agent failed to execute: {message}")
            if session is not None:
                session.transition(SessionState.FAILED)

        if session is not None and session.state == SessionState.RETURNED:
            reporter.emit(StatusKind.COMPLETION, "Agent returning with results")
        reporter.emit(
            StatusKind.COMPLETION,
            f"Task completed: {'Success' if signal.success else 'Failed'}",
        )
        self._logger.info(
            "task_agent_finished",
            session_id=session_id,
            success=signal.success,
            state=session.state.value if session else SessionState.FAILED.value,
            turns_taken=session.turns_taken if session else 0,
        )
        return SessionReport(
            signal=signal,
            session_id=session_id,
            state=session.state if session else SessionState.FAILED,
            state_history=list(session.state_history) if session else [SessionState.FAILED],
            turns_taken=session.turns_taken if session else 0,
            deadline_hit=deadline_hit,
        )

    # ------------------------------------------------------------------
    # INIT
    # ------------------------------------------------------------------

    def _build_session(
        self,
        session_id: str,
        request: AgentTaskRequest,
        forked_history: Sequence[dict[str, Any]],
        system_instructions: str,
    ) -> AgentSession:
        try:
            extra = list(self._session_capabilities()) if self._session_capabilities else []
            registry = self._base_registry.derive(
                exclude={SPAWN_CAPABILITY_NAME},
                add=[*extra, ReturnFromTaskCapability()],
            )
            history = fork_history(forked_history)
            conversation = self._conversation_factory.create(
                history,
                system_instructions,
                registry.all(),
            )
        except Exception as exc:
            raise SessionConstructionError(
                str(exc) or type(exc).__name__,
                details={"session_id": session_id},
            ) from exc

        started_at = self._clock()
        timeout_s = request.timeout_ms / 1000
        lead_s = self._settings.warning_lead_ms / 1000
        return AgentSession(
            session_id=session_id,
            request=request,
            system_instructions=system_instructions,
            forked_history=history,
            registry=registry,
            conversation=conversation,
            cancellation=CancellationToken(),
            turns_remaining=request.max_turns,
            started_at=started_at,
            deadline=started_at + timeout_s,
            warning_deadline=started_at + max(0.0, timeout_s - lead_s),
            _clock=self._clock,
        )

    # ------------------------------------------------------------------
    # RUNNING
    # ------------------------------------------------------------------

    async def _race(
        self,
        session: AgentSession,
        dispatcher: CapabilityDispatcher,
        reporter: StatusReporter,
    ) -> tuple[AgentReturnSignal | None, bool]:
        """Race the turn loop against the deadline.

        Returns:
            ``(signal, deadline_hit)``. ``signal`` is None when the session
            must summarize.
        """
        session.transition(SessionState.RUNNING)
        loop_task = asyncio.create_task(self._turn_loop(session, dispatcher, reporter))
        try:
            done, _ = await asyncio.wait({loop_task}, timeout=session.time_remaining)
        finally:
            if not loop_task.done():
                loop_task.cancel()

        if loop_task in done:
            if loop_task.cancelled():
                raise SessionInterruptedError(
                    "Turn loop was cancelled before the deadline",
                    details={"session_id": session.session_id},
                )
            return loop_task.result(), False

        self._logger.warning(
            "task_agent_deadline_reached",
            session_id=session.session_id,
            turns_taken=session.turns_taken,
        )
        reporter.emit(StatusKind.ERROR, "Agent timeout - requesting summary")
        await session.cancellation.cancel("deadline")
        await asyncio.wait({loop_task})
        if not loop_task.cancelled() and loop_task.exception() is not None:
            self._logger.debug(
                "task_agent_loop_error_after_deadline",
                session_id=session.session_id,
                error=str(loop_task.exception()),
            )
        return None, True

    async def _turn_loop(
        self,
        session: AgentSession,
        dispatcher: CapabilityDispatcher,
        reporter: StatusReporter,
    ) -> AgentReturnSignal | None:
        message = TurnInput(text=build_initial_message(session.request.task))

        while session.turns_remaining > 0:
            if not session.warning_issued and session.warning_due:
                message = message.with_notice(build_time_warning(self._settings.warning_lead_ms))
                session.warning_issued = True
                self._logger.info(
                    "task_agent_time_warning",
                    session_id=session.session_id,
                    turns_remaining=session.turns_remaining,
                )

            turn = await self._run_turn(session, reporter, message, session.cancellation)
            self._logger.debug(
                "task_agent_turn",
                session_id=session.session_id,
                turn=session.turns_taken + 1,
                content_chars=len(turn.content),
                calls=[request.name for request in turn.requests],
            )

            if not turn.has_requests:
                message = TurnInput(
                    text=CONTINUE_OR_RETURN_NUDGE if turn.content.strip() else CONTINUE_NUDGE
                )
                session.consume_turn()
                continue

            outcomes = await dispatcher.dispatch(session.registry, turn.requests, session.cancellation)
            session.consume_turn()
            signal = find_return_signal(outcomes)
            if signal is not None:
                session.transition(SessionState.RETURNED)
                self._logger.info(
                    "task_agent_returned",
                    session_id=session.session_id,
                    success=signal.success,
                    turns_taken=session.turns_taken,
                )
                return signal
            message = TurnInput(outcomes=tuple(outcomes))

        session.transition(SessionState.EXHAUSTED)
        self._logger.info(
            "task_agent_turns_exhausted",
            session_id=session.session_id,
            max_turns=session.request.max_turns,
        )
        return None

    async def _run_turn(
        self,
        session: AgentSession,
        reporter: StatusReporter,
        message: TurnInput,
        cancellation: CancellationToken,
    ) -> TurnResult:
        def on_content(preview: str) -> None:
            if len(preview) <= THINKING_PREVIEW_CHARS:
                reporter.emit(StatusKind.THINKING, f"Agent thinking: {preview}")

        return await self._turn_driver.run(
            session.conversation,
            message,
            cancellation,
            on_content=on_content if reporter.enabled else None,
        )

    # ------------------------------------------------------------------
    # SUMMARIZING
    # ------------------------------------------------------------------

    async def _summarize(
        self,
        session: AgentSession,
        dispatcher: CapabilityDispatcher,
        reporter: StatusReporter,
        deadline_hit: bool,
    ) -> AgentReturnSignal:
        session.transition(SessionState.SUMMARIZING)
        if not deadline_hit:
            reporter.emit(StatusKind.ERROR, "Agent turn limit reached - requesting summary")

        cancellation = CancellationToken()
        directive = TurnInput(text=build_summary_directive(session.request.task))
        try:
            try:
                turn = await self._run_turn(session, reporter, directive, cancellation)
                outcomes = await dispatcher.dispatch(session.registry, turn.requests, cancellation)
            except asyncio.CancelledError as exc:
                current = asyncio.current_task()
                if current is not None and current.cancelling() > 0:
                    raise
                raise SummarizationError(str(exc) or "summary turn was cancelled") from exc
        except Exception as exc:
            error = SummarizationError(str(exc), details={"session_id": session.session_id})
            self._logger.error(
                "task_agent_summary_failed",
                session_id=session.session_id,
                error=error.message,
                error_type=type(exc).__name__,
            )
            reporter.emit(StatusKind.ERROR, f"Error: {truncate_preview(error.message, 150)}")
        else:
            signal = find_return_signal(outcomes)
            if signal is not None:
                session.transition(SessionState.RETURNED)
                self._logger.info(
                    "task_agent_summary_returned",
                    session_id=session.session_id,
                    success=signal.success,
                )
                return signal
            self._logger.warning("task_agent_summary_missing", session_id=session.session_id)

        session.transition(SessionState.FAILED)
        return AgentReturnSignal.failure(DEFAULT_FAILURE_DESCRIPTION)


async def run_agent_session(
    request: AgentTaskRequest,
    forked_history: Sequence[dict[str, Any]],
    system_instructions: str,
    status_observer: StatusObserverProtocol | None = None,
    *,
    conversation_factory: ConversationFactoryProtocol,
    base_registry: CapabilityRegistry,
    settings: TaskAgentSettings | None = None,
    session_capabilities: SessionCapabilitiesFactory | None = None,
    parent_session_id: str | None = None,
) -> AgentReturnSignal:
    """Run one task agent session. Always resolves to an AgentReturnSignal."""
    runner = AgentSessionRunner(
        conversation_factory=conversation_factory,
        base_registry=base_registry,
        settings=settings,
        session_capabilities=session_capabilities,
    )
    return await runner.run(
        request,
        forked_history,
        system_instructions,
        status_observer,
        parent_session_id=parent_session_id,
    )
