"""The capability a task agent calls to end its session."""

from __future__ import annotations

from typing import Any

from agentfork.core.capabilities.base_capability import BaseCapability
from agentfork.core.domain.agent_session import RETURN_CAPABILITY_NAME
from agentfork.core.domain.cancellation import CancellationToken
from agentfork.core.domain.control_messages import encode_return_signal
from agentfork.core.domain.models import AgentReturnSignal


class ReturnFromTaskCapability(BaseCapability):
    """
    Encode the arguments as an ``agent_return`` control message.

    The capability does nothing else; the session runner recognizes the
    message in the outcome and ends the session.
    """

    capability_name = RETURN_CAPABILITY_NAME
    capability_description = (
        "Return from the current task with a summary of what was accomplished. "
        "Use this when the task is complete, when you cannot make further "
        "progress, or when you are told that time is running out."
    )
    capability_parameters_schema = {
        "type": "object",
        "properties": {
            "success": {
                "type": "boolean",
                "description": "Whether the task was completed successfully",
            },
            "description": {
                "type": "string",
                "description": "Brief description of what was accomplished or why it failed",
            },
            "result": {
                "type": "string",
                "description": "Detailed result, findings or output of the task (may be empty)",
            },
        },
        "required": ["success", "description", "result"],
    }

    async def _execute(
        self,
        cancellation: CancellationToken,
        *,
        success: bool,
        description: str,
        result: str,
        **_: Any,
    ) -> dict[str, Any]:
        signal = AgentReturnSignal(success=success, description=description, result=result)
        icon, verb = ("✅", "completed") if success else ("❌", "failed")
        return {
            "success": True,
            "output": encode_return_signal(signal),
            "display": f"{icon} Task {verb}: {description}",
        }
