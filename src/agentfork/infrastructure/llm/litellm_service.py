"""
LiteLLM-backed LLM provider.

LiteLLM picks the provider from the model string prefix (``anthropic/...``,
``azure/...``, ``ollama/...``, plain names for OpenAI) and reads credentials
from the provider environment variables. Everything else comes from
``configs/llm_config.yaml``:

    default_model: main
    models:
      main: gpt-4.1
      fast: gpt-4.1-mini
    default_params:
      temperature: 0.2
    model_params:
      fast:
        temperature: 0
    retry:
      max_attempts: 3
      backoff_seconds: 1.0
      timeout: 60
    tracing:
      enabled: false
      path: traces/llm_traces.jsonl
"""

import asyncio
import json
import logging
import os
import time
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Silence LiteLLM before it is imported
os.environ.setdefault("LITELLM_LOG_LEVEL", "ERROR")
os.environ.setdefault("LITELLM_LOGGING", "off")

for _noisy in ("LiteLLM", "litellm", "httpcore", "httpx", "openai"):
    logging.getLogger(_noisy).setLevel(logging.ERROR)

import aiofiles  # noqa: E402
import litellm  # noqa: E402
import structlog  # noqa: E402
import yaml  # noqa: E402
from pydantic import BaseModel, ConfigDict, Field, ValidationError  # noqa: E402

from agentfork.core.domain.enums import LLMStreamEventType  # noqa: E402
from agentfork.core.domain.errors import ConfigError  # noqa: E402

litellm.suppress_debug_info = True
litellm.drop_params = True

logger = structlog.get_logger(__name__)

_TRANSIENT_ERROR_TYPES = frozenset(
    {"RateLimitError", "APIConnectionError", "Timeout", "ServiceUnavailableError"}
)
_TRANSIENT_MARKERS = ("rate limit", "timeout", "overloaded", "429", "502", "503")
_PERMANENT_MARKERS = (
    "invalid api key",
    "authentication",
    "invalid model",
    "invalid request",
    "not found",
)


def is_transient_error(error: Exception) -> bool:
    """Whether a provider error is worth another attempt."""
    text = str(error).lower()
    if any(marker in text for marker in _PERMANENT_MARKERS):
        return False
    return type(error).__name__ in _TRANSIENT_ERROR_TYPES or any(
        marker in text for marker in _TRANSIENT_MARKERS
    )


class RetryPolicy(BaseModel):
    """Attempts, exponential backoff and per-request timeout."""

    model_config = ConfigDict(extra="forbid")

    max_attempts: int = Field(3, ge=1)
    backoff_seconds: float = Field(1.0, ge=0)
    timeout: int = Field(60, gt=0)

    def delay(self, attempt: int) -> float:
        return self.backoff_seconds * (2**attempt)

    def should_retry(self, attempt: int, error: Exception) -> bool:
        return attempt + 1 < self.max_attempts and is_transient_error(error)


class TracingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    path: str = "traces/llm_traces.jsonl"


class LLMConfig(BaseModel):
    """Validated content of ``llm_config.yaml``."""

    model_config = ConfigDict(extra="forbid")

    default_model: str = "main"
    models: dict[str, str] = Field(min_length=1)
    default_params: dict[str, Any] = Field(default_factory=dict)
    model_params: dict[str, dict[str, Any]] = Field(default_factory=dict)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    tracing: TracingConfig = Field(default_factory=TracingConfig)


def load_llm_config(config_path: str | Path) -> LLMConfig:
    """
    Read and validate an LLM config file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If the YAML is malformed or fails validation.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"LLM config not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}", details={"file_path": str(path)}) from exc

    if not isinstance(data, dict):
        raise ConfigError(f"LLM config {path} must contain a mapping", details={"file_path": str(path)})

    try:
        return LLMConfig.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        field_path = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigError(
            f"Invalid LLM config {path}: {field_path}: {first.get('msg', '')}",
            details={"file_path": str(path), "field_path": field_path},
        ) from exc


class _JsonlTracer:
    """Appends one JSON line per completed interaction when tracing is enabled."""

    def __init__(self, config: TracingConfig) -> None:
        self._config = config

    async def record(
        self,
        messages: list[dict[str, Any]],
        response: str | None,
        model: str,
        latency_ms: int,
    ) -> None:
        if not self._config.enabled:
            return
        line = json.dumps(
            {
                "timestamp": datetime.now(UTC).isoformat(),
                "model": model,
                "messages": messages,
                "response": response,
                "latency_ms": latency_ms,
            },
            default=str,
        )
        path = Path(self._config.path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, mode="a", encoding="utf-8") as f:
                await f.write(line + "\n")
        except OSError as exc:
            logger.error("trace_file_write_failed", path=str(path), error=str(exc))


class _ToolCallAssembler:
    """Joins streamed tool call fragments, keyed by their index."""

    def __init__(self) -> None:
        self._calls: dict[int, dict[str, str]] = {}

    def feed(self, fragment: Any) -> list[dict[str, Any]]:
        events: list[dict[str, Any]] = []
        function = getattr(fragment, "function", None)
        name = getattr(function, "name", None) or ""
        call = self._calls.get(fragment.index)
        if call is None:
            call = {"id": getattr(fragment, "id", None) or "", "name": name, "arguments": ""}
            self._calls[fragment.index] = call
            events.append(
                {
                    "type": LLMStreamEventType.TOOL_CALL_START.value,
                    "id": call["id"],
                    "name": call["name"],
                    "index": fragment.index,
                }
            )
        else:
            call["id"] = getattr(fragment, "id", None) or call["id"]
            call["name"] = name or call["name"]

        arguments = getattr(function, "arguments", None)
        if arguments:
            call["arguments"] += arguments
            events.append(
                {
                    "type": LLMStreamEventType.TOOL_CALL_DELTA.value,
                    "id": call["id"],
                    "arguments_delta": arguments,
                    "index": fragment.index,
                }
            )
        return events

    def flush(self) -> list[dict[str, Any]]:
        events = [
            {"type": LLMStreamEventType.TOOL_CALL_END.value, **call, "index": index}
            for index, call in self._calls.items()
        ]
        self._calls = {}
        return events


def _usage(response: Any) -> dict[str, int]:
    usage = getattr(response, "usage", None)
    if usage is None:
        return {}
    if isinstance(usage, dict):
        return usage
    return {
        key: getattr(usage, key, 0) or 0
        for key in ("total_tokens", "prompt_tokens", "completion_tokens")
    }


def _tool_calls(message: Any) -> list[dict[str, Any]] | None:
    calls = getattr(message, "tool_calls", None)
    if not calls:
        return None
    return [
        {
            "id": call.id,
            "type": getattr(call, "type", "function"),
            "function": {"name": call.function.name, "arguments": call.function.arguments},
        }
        for call in calls
    ]


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class LiteLLMService:
    """
    LLM provider over LiteLLM. Implements ``LLMProviderProtocol``.

    Args:
        config_path: Path of the YAML configuration file.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ConfigError: If the config is malformed.
    """

    def __init__(self, config_path: str = "configs/llm_config.yaml") -> None:
        self.config = load_llm_config(config_path)
        self._tracer = _JsonlTracer(self.config.tracing)
        self.logger = logger.bind(component="LiteLLMService")
        self.logger.info(
            "llm_service_initialized",
            default_model=self.config.default_model,
            model_aliases=sorted(self.config.models),
        )

    def _resolve_model(self, model_alias: str | None) -> str:
        """Map an alias to a LiteLLM model string; unknown aliases pass through."""
        alias = model_alias or self.config.default_model
        return self.config.models.get(alias, alias)

    def _alias_params(self, alias: str) -> dict[str, Any]:
        params = dict(self.config.default_params)
        overrides = self.config.model_params.get(alias)
        if overrides is None:
            overrides = self.config.model_params.get(self._resolve_model(alias), {})
        params.update(overrides)
        return params

    def _build_request(
        self,
        messages: list[dict[str, Any]],
        model: str | None,
        tools: list[dict[str, Any]] | None,
        tool_choice: str | dict[str, Any] | None,
        stream: bool,
        **kwargs: Any,
    ) -> dict[str, Any]:
        alias = model or self.config.default_model
        request: dict[str, Any] = {
            "model": self._resolve_model(alias),
            "messages": messages,
            "timeout": self.config.retry.timeout,
            **self._alias_params(alias),
        }
        request.update({key: value for key, value in kwargs.items() if value is not None})
        if stream:
            request["stream"] = True
        if tools:
            request["tools"] = tools
            request["tool_choice"] = tool_choice or "auto"
        return request

    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Non-streaming completion, retried on transient provider errors.

        Returns:
            ``success``, ``content``, ``tool_calls``, ``usage``, ``model`` and
            ``latency_ms``; or ``success=False`` with ``error`` and ``error_type``.
        """
        request = self._build_request(messages, model, tools, tool_choice, False, **kwargs)
        resolved_model = request["model"]
        policy = self.config.retry

        attempt = 0
        while True:
            started = time.monotonic()
            try:
                response = await litellm.acompletion(**request)
                break
            except Exception as exc:
                if policy.should_retry(attempt, exc):
                    delay = policy.delay(attempt)
                    self.logger.warning(
                        "llm_completion_retry",
                        model=resolved_model,
                        attempt=attempt + 1,
                        delay_seconds=delay,
                        error_type=type(exc).__name__,
                    )
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue
                self.logger.error(
                    "llm_completion_failed",
                    model=resolved_model,
                    attempts=attempt + 1,
                    error_type=type(exc).__name__,
                    error=str(exc)[:200],
                )
                return {
                    "success": False,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "model": resolved_model,
                }

        latency_ms = _elapsed_ms(started)
        message = response.choices[0].message
        result = {
            "success": True,
            "content": message.content or None,
            "tool_calls": _tool_calls(message),
            "usage": _usage(response),
            "model": resolved_model,
            "latency_ms": latency_ms,
        }
        self.logger.info(
            "llm_completion_success",
            model=resolved_model,
            tokens=result["usage"].get("total_tokens", 0),
            latency_ms=latency_ms,
        )
        await self._tracer.record(messages, result["content"], resolved_model, latency_ms)
        return result

    async def complete_stream(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Streaming completion as normalized event dicts.

        Tool calls are reported as start/delta events while they stream and
        as complete ``tool_call_end`` events once the choice finishes.
        Provider errors end the stream with an ``error`` event.
        """
        request = self._build_request(messages, model, tools, tool_choice, True, **kwargs)
        resolved_model = request["model"]
        self.logger.debug(
            "llm_stream_started",
            model=resolved_model,
            message_count=len(messages),
            tool_count=len(tools or []),
        )

        started = time.monotonic()
        assembler = _ToolCallAssembler()
        text: list[str] = []
        try:
            response = await litellm.acompletion(**request)
            async for chunk in response:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                content = getattr(choice.delta, "content", None)
                if content:
                    text.append(content)
                    yield {"type": LLMStreamEventType.TOKEN.value, "content": content}
                for fragment in getattr(choice.delta, "tool_calls", None) or []:
                    for event in assembler.feed(fragment):
                        yield event
                if choice.finish_reason:
                    for event in assembler.flush():
                        yield event
        except Exception as exc:
            self.logger.error(
                "llm_stream_failed",
                model=resolved_model,
                error_type=type(exc).__name__,
                error=str(exc)[:200],
            )
            yield {"type": LLMStreamEventType.ERROR.value, "message": str(exc)}
            return

        latency_ms = _elapsed_ms(started)
        self.logger.info("llm_stream_completed", model=resolved_model, latency_ms=latency_ms)
        await self._tracer.record(messages, "".join(text) or None, resolved_model, latency_ms)
        yield {"type": LLMStreamEventType.DONE.value, "usage": _usage(response)}
