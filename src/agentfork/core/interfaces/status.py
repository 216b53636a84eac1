"""Status observer protocol for progress display."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from agentfork.core.domain.models import StatusEvent


class StatusObserverProtocol(Protocol):
    """Sink for human-readable progress events.

    Observers must return quickly. Exceptions raised by an observer are
    logged and ignored by the emitting component.
    """

    def observe(self, event: StatusEvent) -> None:
        ...
