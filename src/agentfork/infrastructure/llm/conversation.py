"""
LLM-backed conversation transport.

Keeps an OpenAI-style message history for one agent and runs turns through
``LLMProviderProtocol.complete_stream``.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import AsyncIterator, Sequence
from typing import Any

import structlog

from agentfork.core.domain.cancellation import CancellationToken
from agentfork.core.domain.enums import LLMStreamEventType, MessageRole
from agentfork.core.domain.errors import TransportError
from agentfork.core.domain.models import CapabilityCallRequest, TurnEvent, TurnInput
from agentfork.core.interfaces.capabilities import CapabilityProtocol
from agentfork.core.interfaces.llm import LLMProviderProtocol
from agentfork.core.interfaces.logging import LoggerProtocol
from agentfork.infrastructure.llm.capability_converter import (
    assistant_message,
    cancelled_tool_message,
    capabilities_to_openai_format,
    close_dangling_tool_calls,
    outcome_to_message,
    parse_tool_arguments,
)


class LLMConversation:
    """
    Conversation of one agent with the language model.

    Outbound messages are appended as tool messages (one per capability
    outcome) followed by a user message for the text part. Tool calls of the
    previous turn that never got an outcome (for example because the session
    deadline interrupted dispatch) are closed with a cancellation notice, so
    the history stays valid for the model.
    """

    def __init__(
        self,
        llm: LLMProviderProtocol,
        *,
        history: Sequence[dict[str, Any]],
        system_instructions: str,
        capabilities: Sequence[CapabilityProtocol],
        model: str | None = None,
        max_output_chars: int = 20000,
        logger: LoggerProtocol | None = None,
    ) -> None:
        self._llm = llm
        self._system_message = {"role": MessageRole.SYSTEM.value, "content": system_instructions}
        self._messages = close_dangling_tool_calls(copy.deepcopy(list(history)))
        self._tools = capabilities_to_openai_format(capabilities)
        self._model = model
        self._max_output_chars = max_output_chars
        self._pending_calls: list[CapabilityCallRequest] = []
        self._logger = logger or structlog.get_logger(__name__).bind(component="LLMConversation")

    @property
    def history(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._messages)

    @property
    def messages(self) -> list[dict[str, Any]]:
        """Full request payload: system message first, then the history."""
        return [self._system_message, *self._messages]

    async def send_turn(
        self,
        message: TurnInput,
        cancellation: CancellationToken,
    ) -> AsyncIterator[TurnEvent]:
        self._append_outbound(message)

        content = ""
        requests: list[CapabilityCallRequest] = []
        async for chunk in self._llm.complete_stream(
            self.messages,
            model=self._model,
            tools=self._tools or None,
        ):
            cancellation.raise_if_cancelled()
            chunk_type = chunk.get("type")
            if chunk_type == LLMStreamEventType.TOKEN.value:
                fragment = chunk.get("content") or ""
                content += fragment
                yield TurnEvent.fragment(fragment)
            elif chunk_type == LLMStreamEventType.TOOL_CALL_END.value:
                requests.append(
                    CapabilityCallRequest(
                        id=chunk.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                        name=chunk.get("name") or "",
                        arguments=parse_tool_arguments(chunk.get("arguments")),
                    )
                )
            elif chunk_type == LLMStreamEventType.ERROR.value:
                raise TransportError(
                    chunk.get("message") or "LLM stream failed",
                    details={"model": self._model},
                )

        self._messages.append(assistant_message(content, requests))
        self._pending_calls = list(requests)
        self._logger.debug(
            "conversation_turn_complete",
            content_chars=len(content),
            tool_calls=[request.name for request in requests],
            history_length=len(self._messages),
        )
        for request in requests:
            yield TurnEvent.call(request)

    def _append_outbound(self, message: TurnInput) -> None:
        answered = set()
        for outcome in message.outcomes:
            answered.add(outcome.request.id)
            self._messages.append(outcome_to_message(outcome, self._max_output_chars))
        for request in self._pending_calls:
            if request.id not in answered:
                self._messages.append(cancelled_tool_message(request.id, request.name))
        self._pending_calls = []
        if message.text:
            self._messages.append({"role": MessageRole.USER.value, "content": message.text})


class LLMConversationFactory:
    """Create LLM conversations for primary and task agents."""

    def __init__(
        self,
        llm: LLMProviderProtocol,
        *,
        model: str | None = None,
        max_output_chars: int = 20000,
    ) -> None:
        self._llm = llm
        self._model = model
        self._max_output_chars = max_output_chars

    def create(
        self,
        history: Sequence[dict[str, Any]],
        system_instructions: str,
        capabilities: Sequence[CapabilityProtocol],
    ) -> LLMConversation:
        return LLMConversation(
            self._llm,
            history=history,
            system_instructions=system_instructions,
            capabilities=capabilities,
            model=self._model,
            max_output_chars=self._max_output_chars,
        )
