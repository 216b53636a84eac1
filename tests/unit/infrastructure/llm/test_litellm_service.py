"""Tests for LiteLLMService configuration, retries and stream normalization."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from agentfork.core.domain.errors import ConfigError
from agentfork.infrastructure.llm import litellm_service
from agentfork.infrastructure.llm.litellm_service import (
    LiteLLMService,
    RetryPolicy,
    is_transient_error,
    load_llm_config,
)

CONFIG = """
default_model: main
models:
  main: gpt-4.1
  fast: gpt-4.1-mini
default_params:
  temperature: 0.2
  max_tokens: 4000
model_params:
  fast:
    temperature: 0
retry:
  max_attempts: 2
  backoff_seconds: 0
  timeout: 10
"""


@pytest.fixture
def config_path(tmp_path: Path) -> str:
    path = tmp_path / "llm_config.yaml"
    path.write_text(CONFIG, encoding="utf-8")
    return str(path)


def _chunk(content: str | None = None, tool_calls: list[Any] | None = None, finish: str | None = None):
    delta = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta, finish_reason=finish)])


def _tool_delta(index: int, *, id: str | None = None, name: str | None = None, arguments: str | None = None):
    return SimpleNamespace(index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments))


class _Stream:
    def __init__(self, chunks: list[Any]) -> None:
        self._chunks = chunks
        self.usage = None

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk


class TestConfiguration:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            LiteLLMService(str(tmp_path / "missing.yaml"))

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            LiteLLMService(str(path))

    def test_models_required(self, tmp_path: Path) -> None:
        path = tmp_path / "no_models.yaml"
        path.write_text("default_model: main\n", encoding="utf-8")
        with pytest.raises(ConfigError) as exc_info:
            LiteLLMService(str(path))
        assert exc_info.value.details["field_path"] == "models"

    def test_unknown_keys_are_rejected(self, config_path: str) -> None:
        with open(config_path, "a", encoding="utf-8") as f:
            f.write("retries: 5\n")
        with pytest.raises(ConfigError, match="retries"):
            LiteLLMService(config_path)

    def test_shipped_config_is_valid(self) -> None:
        shipped = Path(__file__).resolve().parents[4] / "configs" / "llm_config.yaml"
        config = load_llm_config(shipped)

        assert config.models["fast"] == "gpt-4.1-mini"
        assert config.tracing.enabled is False

    def test_alias_resolution_and_params(self, config_path: str) -> None:
        service = LiteLLMService(config_path)

        request = service._build_request(
            [{"role": "user", "content": "hi"}], "fast", None, None, True, max_tokens=100
        )

        assert request["model"] == "gpt-4.1-mini"
        assert request["temperature"] == 0
        assert request["max_tokens"] == 100
        assert request["timeout"] == 10
        assert request["stream"] is True
        assert "tools" not in request

    def test_unknown_alias_passes_through(self, config_path: str) -> None:
        service = LiteLLMService(config_path)
        assert service._resolve_model("anthropic/claude-sonnet-4-20250514") == (
            "anthropic/claude-sonnet-4-20250514"
        )
        assert service._resolve_model(None) == "gpt-4.1"

    def test_tools_default_to_auto_choice(self, config_path: str) -> None:
        request = LiteLLMService(config_path)._build_request(
            [], None, [{"type": "function"}], None, False
        )
        assert request["tool_choice"] == "auto"


class TestRetryPolicy:
    def test_exponential_delay(self) -> None:
        policy = RetryPolicy(backoff_seconds=0.5)
        assert [policy.delay(attempt) for attempt in range(3)] == [0.5, 1.0, 2.0]

    def test_last_attempt_is_not_retried(self) -> None:
        policy = RetryPolicy(max_attempts=2)
        error = RuntimeError("503 overloaded")
        assert policy.should_retry(0, error)
        assert not policy.should_retry(1, error)

    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("429 rate limit exceeded", True),
            ("upstream timeout", True),
            ("Invalid API key provided", False),
            ("model not found", False),
            ("something odd", False),
        ],
    )
    def test_transient_classification(self, message: str, expected: bool) -> None:
        assert is_transient_error(RuntimeError(message)) is expected


class TestComplete:
    async def test_success(self, config_path: str, monkeypatch: pytest.MonkeyPatch) -> None:
        async def fake_acompletion(**request: Any):
            message = SimpleNamespace(content="hello", tool_calls=None)
            usage = SimpleNamespace(total_tokens=5, prompt_tokens=3, completion_tokens=2)
            return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)

        monkeypatch.setattr(litellm_service.litellm, "acompletion", fake_acompletion)

        result = await LiteLLMService(config_path).complete([{"role": "user", "content": "hi"}])

        assert result["success"] is True
        assert result["content"] == "hello"
        assert result["usage"]["total_tokens"] == 5
        assert result["model"] == "gpt-4.1"

    async def test_transient_error_is_retried(self, config_path: str, monkeypatch: pytest.MonkeyPatch) -> None:
        attempts: list[int] = []

        async def flaky_acompletion(**request: Any):
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("429 rate limit exceeded")
            message = SimpleNamespace(content="ok", tool_calls=None)
            return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None)

        monkeypatch.setattr(litellm_service.litellm, "acompletion", flaky_acompletion)

        result = await LiteLLMService(config_path).complete([])

        assert result["success"] is True
        assert len(attempts) == 2

    async def test_permanent_error_is_returned(self, config_path: str, monkeypatch: pytest.MonkeyPatch) -> None:
        async def failing_acompletion(**request: Any):
            raise RuntimeError("Invalid API key provided")

        monkeypatch.setattr(litellm_service.litellm, "acompletion", failing_acompletion)

        result = await LiteLLMService(config_path).complete([])

        assert result == {
            "success": False,
            "error": "Invalid API key provided",
            "error_type": "RuntimeError",
            "model": "gpt-4.1",
        }


class TestCompleteStream:
    async def test_tokens_and_tool_calls_are_normalized(
        self, config_path: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        chunks = [
            _chunk(content="Let me "),
            _chunk(content="check."),
            _chunk(tool_calls=[_tool_delta(0, id="call_1", name="read_file", arguments='{"pa')]),
            _chunk(tool_calls=[_tool_delta(0, arguments='th": "a.txt"}')]),
            _chunk(finish="tool_calls"),
        ]

        async def fake_acompletion(**request: Any):
            return _Stream(chunks)

        monkeypatch.setattr(litellm_service.litellm, "acompletion", fake_acompletion)

        events = [event async for event in LiteLLMService(config_path).complete_stream([])]

        assert [event["type"] for event in events] == [
            "token",
            "token",
            "tool_call_start",
            "tool_call_delta",
            "tool_call_delta",
            "tool_call_end",
            "done",
        ]
        end = events[5]
        assert end["id"] == "call_1"
        assert end["name"] == "read_file"
        assert json.loads(end["arguments"]) == {"path": "a.txt"}

    async def test_errors_are_yielded(self, config_path: str, monkeypatch: pytest.MonkeyPatch) -> None:
        async def failing_acompletion(**request: Any):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(litellm_service.litellm, "acompletion", failing_acompletion)

        events = [event async for event in LiteLLMService(config_path).complete_stream([])]

        assert events == [{"type": "error", "message": "connection reset"}]


async def test_tracing_appends_jsonl(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    trace_file = tmp_path / "traces" / "llm.jsonl"
    config = tmp_path / "traced.yaml"
    config.write_text(
        CONFIG + f"tracing:\n  enabled: true\n  path: {trace_file.as_posix()}\n",
        encoding="utf-8",
    )

    async def fake_acompletion(**request: Any):
        message = SimpleNamespace(content="traced", tool_calls=None)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None)

    monkeypatch.setattr(litellm_service.litellm, "acompletion", fake_acompletion)

    await LiteLLMService(str(config)).complete([{"role": "user", "content": "hi"}])

    [line] = trace_file.read_text(encoding="utf-8").splitlines()
    assert json.loads(line)["response"] == "traced"
