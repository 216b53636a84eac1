"""The capability the primary agent calls to delegate work to a task agent."""

from __future__ import annotations

from typing import Any

from agentfork.core.capabilities.base_capability import BaseCapability
from agentfork.core.domain.agent_session import SPAWN_CAPABILITY_NAME
from agentfork.core.domain.cancellation import CancellationToken
from agentfork.core.domain.control_messages import encode_spawn_request
from agentfork.core.domain.models import (
    DEFAULT_MAX_TURNS,
    DEFAULT_TIMEOUT_MS,
    AgentTaskRequest,
)


class TaskAgentCapability(BaseCapability):
    """
    Emit a ``spawn_agent`` control message instead of doing work.

    The host inspects every outcome for this message, runs the task agent and
    replaces the outcome with the formatted task agent result.
    """

    capability_name = SPAWN_CAPABILITY_NAME
    capability_description = (
        "Spawn a task agent to handle a specific sub-task. The agent sees the "
        "conversation history, can use tools to complete its task and returns "
        "a summary of what it did and any results."
    )

    def __init__(
        self,
        *,
        default_max_turns: int = DEFAULT_MAX_TURNS,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self._default_max_turns = default_max_turns
        self._default_timeout_ms = default_timeout_ms

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "task": {
                    "type": "string",
                    "description": "Brief description of the task (1-2 sentences)",
                },
                "prompt": {
                    "type": "string",
                    "description": "Detailed instructions for the agent on how to complete the task",
                },
                "maxTurns": {
                    "type": "integer",
                    "description": (
                        "Maximum number of turns the agent can take "
                        f"(default: {self._default_max_turns})"
                    ),
                },
                "timeoutMs": {
                    "type": "integer",
                    "description": (
                        "Maximum time in milliseconds for the agent to complete "
                        f"(default: {self._default_timeout_ms})"
                    ),
                },
            },
            "required": ["task", "prompt"],
        }

    def validate_params(self, **kwargs: Any) -> tuple[bool, str | None]:
        is_valid, error = super().validate_params(**kwargs)
        if not is_valid:
            return is_valid, error
        for key in ("task", "prompt"):
            if not str(kwargs.get(key, "")).strip():
                return False, f"Parameter '{key}' must not be empty"
        for key in ("maxTurns", "timeoutMs"):
            value = kwargs.get(key)
            if value is not None and value <= 0:
                return False, f"Parameter '{key}' must be greater than 0"
        return True, None

    async def _execute(
        self,
        cancellation: CancellationToken,
        *,
        task: str,
        prompt: str,
        maxTurns: int | None = None,  # noqa: N803
        timeoutMs: int | None = None,  # noqa: N803
        **_: Any,
    ) -> dict[str, Any]:
        request = AgentTaskRequest(
            task=task,
            instructions=prompt,
            max_turns=maxTurns or self._default_max_turns,
            timeout_ms=timeoutMs or self._default_timeout_ms,
        )
        return {
            "success": True,
            "output": encode_spawn_request(request),
            "display": f"Spawning task agent: {task}",
        }
