"""Domain-specific exception types for Agentfork."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class AgentforkError(Exception):
    """Base exception for Agentfork domain errors."""

    message: str
    code: str = "agentfork_error"
    details: Dict[str, Any] | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.details is None:
            self.details = {}


class CapabilityNotFoundError(AgentforkError):
    """Raised when a requested capability is not registered."""

    def __init__(self, capability_name: str) -> None:
        self.capability_name = capability_name
        super().__init__(
            message=f"capability {capability_name} not found",
            code="capability_not_found",
            details={"capability_name": capability_name},
        )


class CapabilityExecutionError(AgentforkError):
    """Error raised for capability invocation failures."""

    def __init__(
        self,
        message: str,
        *,
        capability_name: str | None = None,
        details: Dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if capability_name:
            details.setdefault("capability_name", capability_name)
        self.capability_name = capability_name
        super().__init__(message=message, code="capability_error", details=details)


class SessionConstructionError(AgentforkError):
    """Raised when a task agent session cannot be assembled."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="session_construction_error", details=details)


class SummarizationError(AgentforkError):
    """Raised when the forced summarization turn cannot run."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="summarization_error", details=details)


class TransportError(AgentforkError):
    """Raised when the conversation transport reports a failed turn."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="transport_error", details=details)


class SessionInterruptedError(AgentforkError):
    """Raised when the turn loop ends cancelled without the runner cancelling it."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="session_interrupted", details=details)


class ConfigError(AgentforkError):
    """Error raised for configuration failures."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="config_error", details=details)


def capability_error_payload(
    error: CapabilityExecutionError, extra: Dict[str, Any] | None = None
) -> Dict[str, Any]:
    """Convert a CapabilityExecutionError into a standardized result payload."""
    payload = {
        "success": False,
        "error": str(error),
        "error_type": type(error).__name__,
        "details": error.details or {},
    }
    if extra:
        payload.update(extra)
    return payload
