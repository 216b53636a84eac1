"""Tests for the spawn/return control message codec."""

from __future__ import annotations

import json

import pytest

from agentfork.core.domain.control_messages import (
    AgentReturnMessage,
    SpawnAgentMessage,
    UnrecognizedMessage,
    decode_control_message,
    decode_return_signal,
    decode_spawn_request,
    encode_return_signal,
    encode_spawn_request,
)
from agentfork.core.domain.models import AgentReturnSignal, AgentTaskRequest


class TestReturnSignalCodec:
    def test_round_trip_preserves_fields(self) -> None:
        signal = AgentReturnSignal(success=False, description="blocked", result="")
        assert decode_return_signal(encode_return_signal(signal)) == signal

    def test_round_trip_with_multiline_unicode_result(self) -> None:
        signal = AgentReturnSignal(True, "Wrote report", "Zeile 1\n✓ Zeile 2 \"quoted\"")
        assert decode_return_signal(encode_return_signal(signal)) == signal

    def test_encoded_payload_is_tagged_json(self) -> None:
        payload = json.loads(encode_return_signal(AgentReturnSignal(True, "ok", "r")))
        assert payload == {"type": "agent_return", "success": True, "description": "ok", "result": "r"}

    def test_missing_result_is_not_a_signal(self) -> None:
        payload = json.dumps({"type": "agent_return", "success": True, "description": "x"})
        assert decode_return_signal(payload) is None

    def test_string_success_is_rejected(self) -> None:
        payload = json.dumps(
            {"type": "agent_return", "success": "true", "description": "x", "result": ""}
        )
        assert decode_return_signal(payload) is None

    def test_spawn_payload_is_not_a_return_signal(self) -> None:
        payload = encode_spawn_request(AgentTaskRequest("t", "i"))
        assert decode_return_signal(payload) is None


class TestSpawnRequestCodec:
    def test_round_trip_preserves_limits(self) -> None:
        request = AgentTaskRequest("count files", "Count all .py files", max_turns=5, timeout_ms=1000)
        assert decode_spawn_request(encode_spawn_request(request)) == request

    def test_wire_format_uses_camel_case_limits(self) -> None:
        payload = json.loads(encode_spawn_request(AgentTaskRequest("t", "i", 3, 4000)))
        assert payload == {
            "type": "spawn_agent",
            "task": "t",
            "instructions": "i",
            "maxTurns": 3,
            "timeoutMs": 4000,
        }

    def test_non_positive_limits_are_not_a_request(self) -> None:
        payload = json.dumps(
            {"type": "spawn_agent", "task": "t", "instructions": "i", "maxTurns": 0, "timeoutMs": 1}
        )
        assert decode_spawn_request(payload) is None

    def test_float_limits_are_rejected(self) -> None:
        payload = json.dumps(
            {"type": "spawn_agent", "task": "t", "instructions": "i", "maxTurns": 2.5, "timeoutMs": 1}
        )
        assert decode_spawn_request(payload) is None


class TestDecodeControlMessage:
    @pytest.mark.parametrize(
        "payload",
        [
            "",
            "hello world",
            "{",
            "[]",
            "null",
            "42",
            '{"type": "something_else"}',
            '{"success": true, "description": "d", "result": "r"}',
            "Task Agent completed task: \"x\"\nSuccess: true",
        ],
    )
    def test_arbitrary_strings_decode_to_unrecognized(self, payload: str) -> None:
        assert isinstance(decode_control_message(payload), UnrecognizedMessage)

    @pytest.mark.parametrize("payload", [None, 7, {"type": "agent_return"}, b"{}"])
    def test_non_string_payloads_are_unrecognized(self, payload: object) -> None:
        message = decode_control_message(payload)
        assert isinstance(message, UnrecognizedMessage)
        assert "not str" in message.reason

    def test_dispatches_on_type_tag(self) -> None:
        spawn = decode_control_message(encode_spawn_request(AgentTaskRequest("t", "i")))
        ret = decode_control_message(encode_return_signal(AgentReturnSignal(True, "d")))
        assert isinstance(spawn, SpawnAgentMessage)
        assert isinstance(ret, AgentReturnMessage)

    @pytest.mark.parametrize(
        "payload",
        [
            '{"type": "agent_return", "success": true, "description": "d", "result": "r", "x": 1}',
            '{"type": "spawn_agent", "task": "t", "instructions": "i", "maxTurns": 3, "timeoutMs": 1000, '
            '"priority": "high"}',
        ],
    )
    def test_unexpected_keys_are_unrecognized(self, payload: str) -> None:
        assert isinstance(decode_control_message(payload), UnrecognizedMessage)
        assert decode_return_signal(payload) is None
        assert decode_spawn_request(payload) is None
