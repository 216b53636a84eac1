"""
Agent Session

State of one task agent run: its forked conversation, restricted capability
registry, cancellation token, turn budget and deadlines. A session lives for
exactly one ``AgentSessionRunner.run`` call.
"""

from __future__ import annotations

import copy
import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from agentfork.core.domain.cancellation import CancellationToken
from agentfork.core.domain.capability_registry import CapabilityRegistry
from agentfork.core.domain.enums import SessionState
from agentfork.core.domain.models import AgentTaskRequest
from agentfork.core.interfaces.conversation import ConversationProtocol

SPAWN_CAPABILITY_NAME = "task_agent"
RETURN_CAPABILITY_NAME = "return_from_task"
DEFAULT_WARNING_LEAD_MS = 30_000


def build_task_session_id(parent_session_id: str | None = None) -> str:
    """Build a session id for a task agent, nested under its parent when known."""
    suffix = f"task-{uuid.uuid4().hex[:8]}"
    if parent_session_id:
        return f"{parent_session_id}:{suffix}"
    return suffix


@dataclass
class AgentSession:
    """
    Mutable state of one task agent run.

    Attributes:
        session_id: Identifier used in logs and status events.
        request: The task request being worked on.
        system_instructions: System prompt of the task agent.
        forked_history: Private copy of the parent history at fork time.
        registry: Derived registry exclusive to this session.
        conversation: Conversation created from the forked history.
        cancellation: Token cancelled when the deadline wins the race.
        turns_remaining: Remaining turn budget, never below zero.
        started_at: Monotonic start time in seconds.
        deadline: Monotonic time at which the session must summarize.
        warning_deadline: Monotonic time after which the time warning is sent.
    """

    session_id: str
    request: AgentTaskRequest
    system_instructions: str
    forked_history: list[dict[str, Any]]
    registry: CapabilityRegistry
    conversation: ConversationProtocol
    cancellation: CancellationToken
    turns_remaining: int
    started_at: float
    deadline: float
    warning_deadline: float
    warning_issued: bool = False
    turns_taken: int = 0
    state: SessionState = SessionState.INIT
    state_history: list[SessionState] = field(default_factory=lambda: [SessionState.INIT])
    _clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def transition(self, state: SessionState) -> None:
        self.state = state
        self.state_history.append(state)

    def consume_turn(self) -> None:
        """Use one turn of the budget."""
        self.turns_taken += 1
        self.turns_remaining = max(0, self.turns_remaining - 1)

    def now(self) -> float:
        return self._clock()

    @property
    def warning_due(self) -> bool:
        return self.now() >= self.warning_deadline

    @property
    def time_remaining(self) -> float:
        """Seconds until the deadline, never negative."""
        return max(0.0, self.deadline - self.now())


def fork_history(history: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """Copy a message history so the child cannot mutate the parent's messages."""
    return copy.deepcopy(list(history))
