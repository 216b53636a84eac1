"""
Conversation Transport Protocol

A conversation holds the message history of one agent and runs turns
against a language model. The session runner only sees turn events; how
they are produced (streaming API, scripted fake) is the transport's concern.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from agentfork.core.domain.cancellation import CancellationToken
    from agentfork.core.domain.models import TurnEvent, TurnInput
    from agentfork.core.interfaces.capabilities import CapabilityProtocol


class ConversationProtocol(Protocol):
    """One agent's conversation with the model."""

    @property
    def history(self) -> list[dict[str, Any]]:
        """Copy of the message history, without the system message."""
        ...

    def send_turn(
        self,
        message: TurnInput,
        cancellation: CancellationToken,
    ) -> AsyncIterator[TurnEvent]:
        """
        Send one outbound message and stream the response.

        Yields content fragments and capability call requests. The iterator
        ends when the turn is complete. Transport failures raise.
        """
        ...


class ConversationFactoryProtocol(Protocol):
    """Creates conversations for new sessions."""

    def create(
        self,
        history: Sequence[dict[str, Any]],
        system_instructions: str,
        capabilities: Sequence[CapabilityProtocol],
    ) -> ConversationProtocol:
        """
        Create a conversation seeded with a copy of ``history``.

        The conversation must not mutate the given history.
        """
        ...
