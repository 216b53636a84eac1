"""Spawn request detection and task agent result formatting."""

from __future__ import annotations

from typing import Any

from agentfork.core.domain.control_messages import decode_spawn_request
from agentfork.core.domain.models import AgentReturnSignal, AgentTaskRequest


def detect_spawn_request(payload: Any) -> AgentTaskRequest | None:
    """Return the task request carried by a capability payload, if any."""
    return decode_spawn_request(payload)


def format_result(task: str, signal: AgentReturnSignal) -> str:
    """
    Render a task agent result as ordinary content for the primary agent.

    The ``Result:`` section is only present when ``signal.result`` is
    non-empty.
    """
    text = (
        f'Task Agent completed task: "{task}"\n'
        f"Success: {str(signal.success).lower()}\n"
        f"Summary: {signal.description}\n"
    )
    if signal.result:
        text += f"\nResult:\n{signal.result}"
    return text
