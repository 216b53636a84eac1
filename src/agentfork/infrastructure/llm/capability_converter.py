"""
Capability Converter - OpenAI function calling format conversion.

Translates capabilities, call requests and outcomes into the message
shapes the OpenAI chat API (and therefore LiteLLM) expects.
"""

import json
from collections.abc import Sequence
from typing import Any

from agentfork.core.domain.models import CapabilityCallRequest, CapabilityOutcome
from agentfork.core.interfaces.capabilities import CapabilityProtocol


def capabilities_to_openai_format(
    capabilities: Sequence[CapabilityProtocol],
) -> list[dict[str, Any]]:
    """
    Convert capabilities to OpenAI tool definitions.

    Returns:
        [{"type": "function", "function": {"name", "description", "parameters"}}, ...]
    """
    return [
        {
            "type": "function",
            "function": {
                "name": capability.name,
                "description": capability.description,
                "parameters": capability.parameters_schema,
            },
        }
        for capability in capabilities
    ]


def parse_tool_arguments(raw_arguments: str | dict[str, Any] | None) -> dict[str, Any]:
    """Parse streamed tool call arguments; invalid JSON yields an empty dict."""
    if isinstance(raw_arguments, dict):
        return raw_arguments
    if not raw_arguments:
        return {}
    try:
        parsed = json.loads(raw_arguments)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def request_to_tool_call(request: CapabilityCallRequest) -> dict[str, Any]:
    """OpenAI ``tool_calls`` entry for a call request."""
    return {
        "id": request.id,
        "type": "function",
        "function": {
            "name": request.name,
            "arguments": json.dumps(request.arguments, ensure_ascii=False),
        },
    }


def assistant_message(
    content: str,
    requests: Sequence[CapabilityCallRequest] = (),
) -> dict[str, Any]:
    """Assistant message, with ``tool_calls`` when the turn requested calls."""
    if requests:
        message: dict[str, Any] = {"role": "assistant", "content": content or None}
        message["tool_calls"] = [request_to_tool_call(request) for request in requests]
        return message
    return {"role": "assistant", "content": content}


def outcome_to_message(
    outcome: CapabilityOutcome,
    max_output_chars: int = 20000,
) -> dict[str, Any]:
    """
    Convert a capability outcome to an OpenAI tool message.

    Large outputs are truncated to keep the history within the context window.
    """
    content = outcome.text
    if len(content) > max_output_chars:
        overflow = len(content) - max_output_chars
        content = content[:max_output_chars] + f"\n\n[... TRUNCATED - {overflow} more chars ...]"
    return {
        "role": "tool",
        "tool_call_id": outcome.request.id,
        "name": outcome.request.name,
        "content": content,
    }


def cancelled_tool_message(tool_call_id: str, name: str) -> dict[str, Any]:
    """Tool message closing a call whose result was never delivered."""
    return {
        "role": "tool",
        "tool_call_id": tool_call_id,
        "name": name,
        "content": "Error: capability call was cancelled before it completed",
    }


PENDING_IN_PARENT_NOTICE = "Result pending: this call is still running in the parent agent."


def close_dangling_tool_calls(
    messages: list[dict[str, Any]],
    content: str = PENDING_IN_PARENT_NOTICE,
) -> list[dict[str, Any]]:
    """
    Return a copy of ``messages`` where every assistant tool call has a tool message.

    A history forked while the parent is in the middle of a call (the
    ``task_agent`` call that spawned the child) ends with unanswered tool
    calls, which the chat API rejects.
    """
    answered = {
        message.get("tool_call_id")
        for message in messages
        if message.get("role") == "tool"
    }
    closed: list[dict[str, Any]] = []
    for message in messages:
        closed.append(message)
        for call in message.get("tool_calls") or []:
            call_id = call.get("id")
            if call_id not in answered:
                name = call.get("function", {}).get("name", "")
                closed.append(
                    {"role": "tool", "tool_call_id": call_id, "name": name, "content": content}
                )
    return closed
