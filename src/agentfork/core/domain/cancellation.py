"""
Cancellation primitives for cooperative task agent cancellation.

The session runner owns the policy (cancel when the deadline wins the race);
turns and capabilities only observe the token.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)


class CancellationState(str, Enum):
    """Cancellation state machine states."""

    NONE = "none"
    REQUESTED = "requested"


@dataclass(eq=False)
class CancellationToken:
    """
    Token checked by turns and capabilities to stop in-flight work.

    State machine:
        NONE -> REQUESTED (deadline expired or parent cancelled)

    Child tokens inherit cancellation from their parent. Callbacks registered
    with ``on_cancel`` run once when ``cancel`` is awaited.
    """

    reason: str | None = None
    _state: CancellationState = field(default=CancellationState.NONE)
    _children: list["CancellationToken"] = field(default_factory=list)
    _callbacks: list[Callable[[], Awaitable[None]]] = field(default_factory=list)
    _event: asyncio.Event | None = field(default=None, repr=False)

    @property
    def state(self) -> CancellationState:
        return self._state

    @property
    def is_cancelled(self) -> bool:
        """True once cancellation was requested."""
        return self._state == CancellationState.REQUESTED

    def request(self, reason: str = "cancelled") -> bool:
        """Mark the token cancelled without running callbacks.

        Returns:
            True if the state changed, False if it was already cancelled.
        """
        if self.is_cancelled:
            return False
        self._state = CancellationState.REQUESTED
        self.reason = reason
        if self._event is not None:
            self._event.set()
        for child in self._children:
            child.request(reason)
        return True

    async def cancel(self, reason: str = "cancelled") -> None:
        """Request cancellation and run the registered callbacks."""
        if not self.request(reason):
            return
        await self._trigger_callbacks()

    def child(self) -> "CancellationToken":
        """Create a token that is cancelled whenever this one is."""
        token = CancellationToken()
        if self.is_cancelled:
            token.request(self.reason or "cancelled")
        self._children.append(token)
        return token

    def on_cancel(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Register a coroutine callback run on cancellation."""
        self._callbacks.append(callback)

    def raise_if_cancelled(self) -> None:
        """Raise ``asyncio.CancelledError`` when cancellation was requested."""
        if self.is_cancelled:
            raise asyncio.CancelledError(self.reason)

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        if self.is_cancelled:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()

    async def _trigger_callbacks(self) -> None:
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                await callback()
            except Exception as exc:
                logger.warning("cancellation_callback_failed", error=str(exc))
        for child in self._children:
            await child._trigger_callbacks()
