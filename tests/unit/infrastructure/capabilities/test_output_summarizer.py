"""Tests for OutputSummarizer."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from agentfork.infrastructure.capabilities.output_summarizer import (
    FALLBACK_PREVIEW_LINES,
    OutputSummarizer,
    strip_ansi,
)


class FakeLLM:
    def __init__(self, result: dict[str, Any] | None = None, *, delay: float = 0.0) -> None:
        self.result = result or {"success": True, "content": "short summary"}
        self.delay = delay
        self.calls: list[dict[str, Any]] = []

    async def complete(self, messages: list[dict[str, Any]], **kwargs: Any) -> dict[str, Any]:
        self.calls.append({"messages": messages, **kwargs})
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.result


def _long_output(lines: int = 50) -> str:
    return "\n".join(f"line {index} " + "x" * 40 for index in range(lines))


def test_strip_ansi() -> None:
    assert strip_ansi("\x1b[31mred\x1b[0m plain") == "red plain"


async def test_short_content_passes_through() -> None:
    llm = FakeLLM()
    result = await OutputSummarizer(llm, max_characters=100).summarize_if_needed(
        "\x1b[1mok\x1b[0m", "shell"
    )

    assert result.is_summarized is False
    assert result.content == "ok"
    assert result.original_length == 2
    assert llm.calls == []


async def test_long_content_is_summarized_by_llm() -> None:
    llm = FakeLLM()
    summarizer = OutputSummarizer(llm, model="fast", max_characters=100)

    result = await summarizer.summarize_if_needed(_long_output(), "shell")

    assert result.is_summarized is True
    assert result.content == "short summary"
    assert result.summarized_length == len("short summary")
    call = llm.calls[0]
    assert call["model"] == "fast"
    assert call["temperature"] == 0
    assert call["max_tokens"] == 500
    assert call["messages"][1]["content"].startswith("Summarize the key output from this shell command")


async def test_custom_prompt_and_threshold() -> None:
    llm = FakeLLM()
    result = await OutputSummarizer(llm).summarize_if_needed(
        "x" * 50, "grep", prompt="Only list file names.", max_allowed_characters=10
    )

    assert result.is_summarized is True
    assert llm.calls[0]["messages"][1]["content"].startswith("Only list file names.")


async def test_llm_failure_falls_back_to_preview(stub_logger) -> None:
    llm = FakeLLM({"success": False, "error": "rate limited"})
    summarizer = OutputSummarizer(llm, max_characters=100, logger=stub_logger)

    result = await summarizer.summarize_if_needed(_long_output(30), "shell")

    assert result.is_summarized is True
    assert result.content.startswith("shell output too large to display fully (")
    assert f"First {FALLBACK_PREVIEW_LINES} lines:" in result.content
    assert "line 19 " in result.content
    assert "line 20 " not in result.content
    assert result.content.endswith("\n... (truncated)")
    assert stub_logger.events("warning") == ["output_summarization_failed"]


async def test_slow_llm_times_out_to_fallback(stub_logger) -> None:
    llm = FakeLLM(delay=1.0)
    summarizer = OutputSummarizer(llm, max_characters=10, timeout_seconds=0.01, logger=stub_logger)

    result = await summarizer.summarize_if_needed("abc\n" * 10, "shell")

    assert "output too large to display fully" in result.content
    assert "... (truncated)" not in result.content


async def test_without_llm_uses_fallback() -> None:
    result = await OutputSummarizer(max_characters=5).summarize_if_needed("a\nb\nc\nd", "read_file")

    assert result.content == (
        "read_file output too large to display fully (7 characters, 4 lines).\n"
        "First 20 lines:\na\nb\nc\nd"
    )
    assert result.original_length == 7


async def test_summarize_ignores_the_threshold() -> None:
    llm = FakeLLM()

    summary = await OutputSummarizer(llm, max_characters=10_000).summarize(
        "\x1b[1mtiny\x1b[0m", "read_file", "What is this?"
    )

    assert summary == "short summary"
    assert llm.calls[0]["messages"][-1]["content"] == "What is this?\n\ntiny"


async def test_summarize_raises_on_failure() -> None:
    llm = FakeLLM({"success": False, "error": "quota exceeded"})

    with pytest.raises(RuntimeError, match="quota exceeded"):
        await OutputSummarizer(llm).summarize("content", "read_file")


async def test_summarize_requires_an_llm() -> None:
    with pytest.raises(RuntimeError, match="No LLM configured"):
        await OutputSummarizer().summarize("content", "read_file")
