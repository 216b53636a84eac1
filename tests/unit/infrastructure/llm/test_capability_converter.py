"""Tests for the OpenAI message conversion helpers."""

import json

from agentfork.core.domain.models import CapabilityCallRequest, CapabilityOutcome
from agentfork.infrastructure.capabilities.file_capabilities import ReadFileCapability
from agentfork.infrastructure.llm.capability_converter import (
    PENDING_IN_PARENT_NOTICE,
    assistant_message,
    capabilities_to_openai_format,
    close_dangling_tool_calls,
    outcome_to_message,
    parse_tool_arguments,
)


def test_capabilities_to_openai_format() -> None:
    [tool] = capabilities_to_openai_format([ReadFileCapability()])

    assert tool["type"] == "function"
    assert tool["function"]["name"] == "read_file"
    assert tool["function"]["parameters"]["required"] == ["path"]


class TestParseToolArguments:
    def test_json_string(self) -> None:
        assert parse_tool_arguments('{"path": "a.txt"}') == {"path": "a.txt"}

    def test_dict_passes_through(self) -> None:
        assert parse_tool_arguments({"x": 1}) == {"x": 1}

    def test_invalid_or_empty_input_yields_empty_dict(self) -> None:
        assert parse_tool_arguments("{not json") == {}
        assert parse_tool_arguments("") == {}
        assert parse_tool_arguments(None) == {}
        assert parse_tool_arguments("[1, 2]") == {}


class TestMessages:
    def test_assistant_message_without_calls(self) -> None:
        assert assistant_message("hello") == {"role": "assistant", "content": "hello"}

    def test_assistant_message_with_calls(self) -> None:
        request = CapabilityCallRequest("c1", "read_file", {"path": "ä.txt"})

        message = assistant_message("", [request])

        assert message["content"] is None
        [call] = message["tool_calls"]
        assert call["id"] == "c1"
        assert json.loads(call["function"]["arguments"]) == {"path": "ä.txt"}

    def test_outcome_to_message_uses_outcome_text(self) -> None:
        outcome = CapabilityOutcome(
            CapabilityCallRequest("c1", "read_file"), ok=False, error="File not found: x"
        )

        assert outcome_to_message(outcome) == {
            "role": "tool",
            "tool_call_id": "c1",
            "name": "read_file",
            "content": "Error: File not found: x",
        }

    def test_outcome_to_message_truncates(self) -> None:
        outcome = CapabilityOutcome(CapabilityCallRequest("c1", "shell"), ok=True, output="y" * 30)

        content = outcome_to_message(outcome, max_output_chars=10)["content"]

        assert content.startswith("y" * 10)
        assert content.endswith("[... TRUNCATED - 20 more chars ...]")


class TestCloseDanglingToolCalls:
    def test_unanswered_call_gets_pending_notice(self) -> None:
        history = [
            {"role": "user", "content": "go"},
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {"id": "a", "function": {"name": "read_file"}},
                    {"id": "b", "function": {"name": "task_agent"}},
                ],
            },
            {"role": "tool", "tool_call_id": "a", "name": "read_file", "content": "data"},
        ]

        closed = close_dangling_tool_calls(history)

        assert closed[2] == {
            "role": "tool",
            "tool_call_id": "b",
            "name": "task_agent",
            "content": PENDING_IN_PARENT_NOTICE,
        }
        assert closed[3]["tool_call_id"] == "a"
        assert len(history) == 3

    def test_complete_history_is_unchanged(self) -> None:
        history = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]
        assert close_dangling_tool_calls(history) == history
