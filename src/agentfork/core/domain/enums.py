"""
Core Domain Enums

Defines session states, status kinds and stream event types so that
magic strings stay out of the orchestration code.
"""

from enum import Enum


class ExecutionStatus(str, Enum):
    """Status of a primary agent mission."""

    COMPLETED = "completed"
    FAILED = "failed"


class SessionState(str, Enum):
    """States of a task agent session.

    INIT -> RUNNING -> (RETURNED | EXHAUSTED) -> SUMMARIZING -> (RETURNED | FAILED)
    """

    INIT = "init"
    RUNNING = "running"
    RETURNED = "returned"
    EXHAUSTED = "exhausted"
    SUMMARIZING = "summarizing"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.RETURNED, SessionState.FAILED)


class StatusKind(str, Enum):
    """Coarse kind of a human-readable progress event."""

    START = "start"
    THINKING = "thinking"
    CAPABILITY_CALL = "capability_call"
    CAPABILITY_RESULT = "capability_result"
    COMPLETION = "completion"
    ERROR = "error"


class TurnEventType(str, Enum):
    """Events produced by one conversation turn."""

    CONTENT = "content"
    CAPABILITY_CALL = "capability_call"


class LLMStreamEventType(str, Enum):
    """Types of events from LLM streaming responses."""

    TOKEN = "token"
    TOOL_CALL_START = "tool_call_start"
    TOOL_CALL_DELTA = "tool_call_delta"
    TOOL_CALL_END = "tool_call_end"
    DONE = "done"
    ERROR = "error"


class MessageRole(str, Enum):
    """Roles in an OpenAI-style message history."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class TaskTrackerOperation(str, Enum):
    """Operations supported by the task tracker capability."""

    ADD = "add"
    LIST = "list"
    COMPLETE = "complete"
    UPDATE = "update"
