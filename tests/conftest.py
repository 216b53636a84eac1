"""Test configuration and shared fixtures.

``ScriptedConversation`` replays a fixed list of turns so session and
orchestrator tests run without a language model. Each turn is a list of
``TurnEvent`` objects, an exception to raise, or a ``Hang``/``Delay`` marker.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Any

import pytest

from agentfork.core.domain.cancellation import CancellationToken
from agentfork.core.domain.control_messages import encode_return_signal
from agentfork.core.domain.models import (
    AgentReturnSignal,
    CapabilityCallRequest,
    StatusEvent,
    TurnEvent,
    TurnInput,
)

_call_ids = itertools.count(1)


# ---------------------------------------------------------------------------
# Turn builders
# ---------------------------------------------------------------------------


def say(text: str) -> list[TurnEvent]:
    """Turn with content only, streamed in two fragments."""
    middle = len(text) // 2
    return [TurnEvent.fragment(text[:middle]), TurnEvent.fragment(text[middle:])]


def call(name: str, arguments: dict[str, Any] | None = None, call_id: str | None = None) -> TurnEvent:
    return TurnEvent.call(
        CapabilityCallRequest(
            id=call_id or f"call_{next(_call_ids)}",
            name=name,
            arguments=arguments or {},
        )
    )


def return_call(success: bool = True, description: str = "done", result: str = "") -> TurnEvent:
    return call(
        "return_from_task",
        {"success": success, "description": description, "result": result},
    )


def return_payload(success: bool = True, description: str = "done", result: str = "") -> str:
    return encode_return_signal(AgentReturnSignal(success, description, result))


@dataclass
class Hang:
    """Turn that blocks until cancelled."""


@dataclass
class Delay:
    seconds: float
    events: list[TurnEvent] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class ScriptedConversation:
    """Conversation that replays scripted turns and records what it was sent."""

    def __init__(
        self,
        turns: Sequence[Any] = (),
        *,
        history: Sequence[dict[str, Any]] = (),
        system_instructions: str = "",
        capability_names: Sequence[str] = (),
    ) -> None:
        self._turns = list(turns)
        self._history = list(history)
        self.system_instructions = system_instructions
        self.capability_names = list(capability_names)
        self.sent: list[TurnInput] = []
        self.cancellations: list[CancellationToken] = []

    @property
    def history(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._history)

    @property
    def raw_history(self) -> list[dict[str, Any]]:
        return self._history

    async def send_turn(
        self,
        message: TurnInput,
        cancellation: CancellationToken,
    ) -> AsyncIterator[TurnEvent]:
        self.sent.append(message)
        self.cancellations.append(cancellation)
        self._history.append({"role": "user", "content": message.text})
        if not self._turns:
            return
        step = self._turns.pop(0)
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, Hang):
            await asyncio.sleep(3600)
            return
        if isinstance(step, Delay):
            await asyncio.sleep(step.seconds)
            step = step.events
        for event in step:
            yield event


class ScriptedConversationFactory:
    """Hands out one ScriptedConversation per ``create`` call, in order."""

    def __init__(self, *scripts: Sequence[Any], error: Exception | None = None) -> None:
        self._scripts = list(scripts)
        self._error = error
        self.conversations: list[ScriptedConversation] = []

    def create(
        self,
        history: Sequence[dict[str, Any]],
        system_instructions: str,
        capabilities: Sequence[Any],
    ) -> ScriptedConversation:
        if self._error is not None:
            raise self._error
        turns = self._scripts.pop(0) if self._scripts else []
        conversation = ScriptedConversation(
            turns,
            history=history,
            system_instructions=system_instructions,
            capability_names=[capability.name for capability in capabilities],
        )
        self.conversations.append(conversation)
        return conversation


class RecordingObserver:
    def __init__(self) -> None:
        self.events: list[StatusEvent] = []

    def observe(self, event: StatusEvent) -> None:
        self.events.append(event)

    @property
    def messages(self) -> list[str]:
        return [event.message for event in self.events]


class ExplodingObserver:
    def observe(self, event: StatusEvent) -> None:
        raise RuntimeError("observer broke")


class StubLogger:
    """Minimal logger satisfying LoggerProtocol."""

    def __init__(self) -> None:
        self.logs: list[tuple[str, dict[str, Any]]] = []

    def info(self, event: str, **kwargs: Any) -> None:
        self.logs.append(("info", {"event": event, **kwargs}))

    def warning(self, event: str, **kwargs: Any) -> None:
        self.logs.append(("warning", {"event": event, **kwargs}))

    def error(self, event: str, **kwargs: Any) -> None:
        self.logs.append(("error", {"event": event, **kwargs}))

    def debug(self, event: str, **kwargs: Any) -> None:
        self.logs.append(("debug", {"event": event, **kwargs}))

    def events(self, level: str | None = None) -> list[str]:
        return [entry["event"] for lvl, entry in self.logs if level is None or lvl == level]


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def stub_logger() -> StubLogger:
    return StubLogger()
