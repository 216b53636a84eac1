"""
Output Summarizer

Condenses oversized capability output (typically shell output) with a
short LLM call before it enters the conversation history. When the LLM is
unavailable or fails, a deterministic preview of the first lines is used.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any

import structlog

from agentfork.core.interfaces.llm import LLMProviderProtocol
from agentfork.core.interfaces.logging import LoggerProtocol

DEFAULT_MAX_CHARACTERS = 10000
DEFAULT_TEMPERATURE = 0
DEFAULT_MAX_OUTPUT_TOKENS = 500
DEFAULT_TIMEOUT_SECONDS = 30.0
FALLBACK_PREVIEW_LINES = 20

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b\][^\x07]*\x07")

_PROMPTS = {
    "shell": (
        "Summarize the key output from this shell command execution. Focus on "
        "important results, errors, or status messages."
    ),
    "grep": "Summarize the search results, highlighting the most relevant matches and their patterns.",
    "read_file": "Provide a structural overview of this file.",
}
_DEFAULT_PROMPT = "Summarize this output, focusing on the most important information."


def strip_ansi(text: str) -> str:
    return _ANSI_ESCAPE.sub("", text)


@dataclass(frozen=True)
class SummarizationResult:
    is_summarized: bool
    content: str
    original_length: int
    summarized_length: int | None = None


class OutputSummarizer:
    def __init__(
        self,
        llm: LLMProviderProtocol | None = None,
        *,
        model: str | None = None,
        max_characters: int = DEFAULT_MAX_CHARACTERS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        logger: LoggerProtocol | None = None,
    ) -> None:
        self._llm = llm
        self._model = model
        self._max_characters = max_characters
        self._timeout_seconds = timeout_seconds
        self._logger = logger or structlog.get_logger(__name__).bind(component="OutputSummarizer")

    async def summarize_if_needed(
        self,
        content: str,
        capability_name: str,
        prompt: str | None = None,
        max_allowed_characters: int | None = None,
    ) -> SummarizationResult:
        """
        Return ``content`` unchanged (minus ANSI codes) when it fits, else a summary.

        Args:
            content: Raw capability output.
            capability_name: Name used to pick the summary prompt.
            prompt: Optional prompt overriding the per-capability default.
            max_allowed_characters: Threshold overriding the configured one.
        """
        clean = strip_ansi(content)
        original_length = len(clean)
        if original_length <= (max_allowed_characters or self._max_characters):
            return SummarizationResult(False, clean, original_length)

        if self._llm is None:
            return self._fallback(clean, capability_name, original_length)

        try:
            summary = await asyncio.wait_for(
                self._generate(clean, capability_name, prompt),
                timeout=self._timeout_seconds,
            )
        except Exception as error:
            self._logger.warning(
                "output_summarization_failed",
                capability=capability_name,
                error=str(error),
                error_type=type(error).__name__,
            )
            return self._fallback(clean, capability_name, original_length)

        return SummarizationResult(True, summary, original_length, len(summary))

    async def summarize(self, content: str, capability_name: str, prompt: str | None = None) -> str:
        """Summarize ``content`` whatever its size. Failures and timeouts are raised."""
        if self._llm is None:
            raise RuntimeError("No LLM configured for summaries")
        return await asyncio.wait_for(
            self._generate(strip_ansi(content), capability_name, prompt),
            timeout=self._timeout_seconds,
        )

    async def _generate(self, content: str, capability_name: str, prompt: str | None) -> str:
        summary_prompt = prompt or _PROMPTS.get(capability_name.lower(), _DEFAULT_PROMPT)
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": self._system_instruction(capability_name)},
            {"role": "user", "content": f"{summary_prompt}\n\n{content}"},
        ]
        result = await self._llm.complete(
            messages,
            model=self._model,
            temperature=DEFAULT_TEMPERATURE,
            max_tokens=DEFAULT_MAX_OUTPUT_TOKENS,
        )
        if not result.get("success"):
            raise RuntimeError(result.get("error") or "summary request failed")
        text = (result.get("content") or "").strip()
        if not text:
            raise RuntimeError("No summary generated")
        return text

    @staticmethod
    def _system_instruction(capability_name: str) -> str:
        return (
            "You are an AI assistant that creates concise summaries of tool outputs.\n"
            f"When summarizing {capability_name} output:\n"
            "- Extract the most important information\n"
            "- Preserve critical error messages or warnings\n"
            "- Mention the output size if relevant\n"
            "- Keep the summary under 500 tokens\n"
            "- Use a clear, structured format"
        )

    @staticmethod
    def _fallback(content: str, capability_name: str, original_length: int) -> SummarizationResult:
        lines = content.split("\n")
        preview = "\n".join(lines[:FALLBACK_PREVIEW_LINES])
        more = "\n... (truncated)" if len(lines) > FALLBACK_PREVIEW_LINES else ""
        summary = (
            f"{capability_name} output too large to display fully "
            f"({original_length} characters, {len(lines)} lines).\n"
            f"First {FALLBACK_PREVIEW_LINES} lines:\n{preview}{more}"
        )
        return SummarizationResult(True, summary, original_length, len(summary))
