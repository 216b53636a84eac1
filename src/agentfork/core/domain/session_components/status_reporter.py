"""Status event emission for agent sessions."""

from __future__ import annotations

from typing import Any

import structlog

from agentfork.core.domain.enums import StatusKind
from agentfork.core.domain.models import StatusEvent
from agentfork.core.interfaces.logging import LoggerProtocol
from agentfork.core.interfaces.status import StatusObserverProtocol


def truncate_preview(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with ``...``."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


class StatusReporter:
    """
    Forward status events of one session to an optional observer.

    Observer failures are logged and swallowed; status events never affect
    the session outcome.
    """

    def __init__(
        self,
        observer: StatusObserverProtocol | None = None,
        *,
        session_id: str = "",
        logger: LoggerProtocol | None = None,
    ) -> None:
        self._observer = observer
        self._session_id = session_id
        self._logger = logger or structlog.get_logger(__name__).bind(component="StatusReporter")

    @property
    def enabled(self) -> bool:
        return self._observer is not None

    @property
    def session_id(self) -> str:
        return self._session_id

    def emit(self, kind: StatusKind, message: str, **log_context: Any) -> None:
        if self._observer is None:
            return
        event = StatusEvent(kind=kind, message=message, session_id=self._session_id)
        try:
            self._observer.observe(event)
        except Exception as exc:
            self._logger.warning(
                "status_observer_failed",
                session_id=self._session_id,
                kind=kind.value,
                error=str(exc),
                **log_context,
            )

    def for_session(self, session_id: str) -> "StatusReporter":
        """Reporter sharing the observer but tagging events with another session."""
        return StatusReporter(self._observer, session_id=session_id, logger=self._logger)
