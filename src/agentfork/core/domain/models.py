"""
Core Domain Models

Data records that flow through the delegation engine: task requests,
capability calls and their outcomes, return signals, turn events and
status events.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from agentfork.core.domain.enums import ExecutionStatus, StatusKind, TurnEventType

DEFAULT_MAX_TURNS = 20
DEFAULT_TIMEOUT_MS = 300_000


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


@dataclass(frozen=True)
class AgentTaskRequest:
    """
    Request to run one bounded task agent.

    Attributes:
        task: Short label of the unit of work.
        instructions: Detailed instructions for the task agent.
        max_turns: Turn budget of the session (> 0).
        timeout_ms: Wall-clock budget of the session in milliseconds (> 0).
    """

    task: str
    instructions: str
    max_turns: int = DEFAULT_MAX_TURNS
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    def __post_init__(self) -> None:
        if not _is_positive_int(self.max_turns):
            raise ValueError(f"max_turns must be a positive integer, got {self.max_turns!r}")
        if not _is_positive_int(self.timeout_ms):
            raise ValueError(f"timeout_ms must be a positive integer, got {self.timeout_ms!r}")


@dataclass(frozen=True)
class AgentReturnSignal:
    """Terminal value of a task agent session."""

    success: bool
    description: str
    result: str = ""

    @classmethod
    def failure(cls, description: str) -> "AgentReturnSignal":
        return cls(success=False, description=description, result="")


@dataclass(frozen=True)
class CapabilityCallRequest:
    """A capability call requested by the model within one turn."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CapabilityOutcome:
    """
    Result of dispatching one CapabilityCallRequest.

    ``output`` holds the raw capability result (usually a ``{"success": ...}``
    dict). ``text`` is what the model gets to see.
    """

    request: CapabilityCallRequest
    ok: bool
    output: Any = None
    error: str | None = None

    @property
    def text(self) -> str:
        if not self.ok:
            return f"Error: {self.error}"
        payload = self.output
        if payload is None:
            return ""
        if isinstance(payload, str):
            return payload
        if isinstance(payload, dict) and isinstance(payload.get("output"), str):
            return payload["output"]
        return json.dumps(payload, ensure_ascii=False, default=str)

    def with_text(self, text: str) -> "CapabilityOutcome":
        """Return a copy whose payload is replaced by plain text."""
        return replace(self, ok=True, output={"success": True, "output": text}, error=None)

    def to_result_dict(self) -> dict[str, Any]:
        """Result dict in the shape capabilities return."""
        if not self.ok:
            return {"success": False, "error": self.error or ""}
        if isinstance(self.output, dict):
            return self.output
        return {"success": True, "output": self.text}


@dataclass(frozen=True)
class StatusEvent:
    """Human-readable progress event, purely advisory."""

    kind: StatusKind
    message: str
    session_id: str = ""
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class TurnEvent:
    """One event of a streamed turn: a content fragment or a call request."""

    type: TurnEventType
    content: str = ""
    request: CapabilityCallRequest | None = None

    @classmethod
    def fragment(cls, content: str) -> "TurnEvent":
        return cls(type=TurnEventType.CONTENT, content=content)

    @classmethod
    def call(cls, request: CapabilityCallRequest) -> "TurnEvent":
        return cls(type=TurnEventType.CAPABILITY_CALL, request=request)


@dataclass(frozen=True)
class TurnInput:
    """
    Outbound message of a turn.

    Capability outcomes of the previous turn are delivered first, followed by
    ``text`` when it is non-empty.
    """

    text: str = ""
    outcomes: tuple[CapabilityOutcome, ...] = ()

    def with_notice(self, notice: str) -> "TurnInput":
        """Append a notice (e.g. the time warning) to the text part."""
        return replace(self, text=f"{self.text}{notice}")


@dataclass
class TurnResult:
    """Classified response of one turn."""

    content: str = ""
    requests: list[CapabilityCallRequest] = field(default_factory=list)

    @property
    def has_requests(self) -> bool:
        return bool(self.requests)


@dataclass
class ExecutionResult:
    """
    Result of a primary agent mission.

    Attributes:
        session_id: Identifier of the primary session.
        status: Execution status (completed, failed).
        final_message: Final answer or failure reason.
        steps: Number of turns the primary agent used.
        spawned_agents: Number of task agents run during the mission.
    """

    session_id: str
    status: ExecutionStatus | str
    final_message: str
    steps: int = 0
    spawned_agents: int = 0

    @property
    def status_value(self) -> str:
        """Get status as string value."""
        if isinstance(self.status, ExecutionStatus):
            return self.status.value
        return self.status
