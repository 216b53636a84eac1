"""
LLM Provider Protocol

Narrow interface over the language model service. The conversation
transport uses ``complete_stream``; the output summarizer uses ``complete``.

Error handling:
    Neither method raises for provider failures. ``complete`` returns
    ``{"success": False, "error": ..., "error_type": ...}`` and
    ``complete_stream`` yields a final ``{"type": "error", "message": ...}``
    event.
"""

from collections.abc import AsyncIterator
from typing import Any, Protocol


class LLMProviderProtocol(Protocol):
    """Contract for LLM service providers."""

    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Perform a chat completion.

        Args:
            messages: OpenAI-style message dicts.
            model: Model alias or None for the default model.
            tools: Optional tool definitions in OpenAI function calling format.
            tool_choice: Optional tool choice strategy.
            **kwargs: Extra model parameters (temperature, max_tokens, ...).

        Returns:
            Dict with ``success``, ``content``, ``tool_calls`` and ``usage``,
            or ``success=False`` with ``error``.
        """
        ...

    def complete_stream(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Stream a chat completion.

        Yields:
            Event dicts of type ``token``, ``tool_call_start``,
            ``tool_call_delta``, ``tool_call_end``, ``done`` or ``error``.
        """
        ...
