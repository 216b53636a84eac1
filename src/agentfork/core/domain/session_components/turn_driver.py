"""Runs one conversation turn and classifies its events."""

from __future__ import annotations

from collections.abc import Callable

from agentfork.core.domain.cancellation import CancellationToken
from agentfork.core.domain.enums import TurnEventType
from agentfork.core.domain.models import TurnInput, TurnResult
from agentfork.core.interfaces.conversation import ConversationProtocol


class TurnDriver:
    """Send a message and split the streamed response into content and calls."""

    async def run(
        self,
        conversation: ConversationProtocol,
        message: TurnInput,
        cancellation: CancellationToken,
        on_content: Callable[[str], None] | None = None,
    ) -> TurnResult:
        """
        Run one turn.

        Args:
            conversation: Conversation of the session.
            message: Outbound message.
            cancellation: Token forwarded to the transport.
            on_content: Called with the accumulated content after every
                content fragment.

        Returns:
            The full response content and the call requests in stream order.
        """
        result = TurnResult()
        async for event in conversation.send_turn(message, cancellation):
            if event.type == TurnEventType.CONTENT:
                if not event.content:
                    continue
                result.content += event.content
                if on_content is not None:
                    on_content(result.content)
            elif event.type == TurnEventType.CAPABILITY_CALL and event.request is not None:
                result.requests.append(event.request)
        return result
