"""
Capability Protocol

Capabilities are the named operations an agent can invoke (file access,
shell commands, task tracking, spawning a task agent, returning from one).
The registry and dispatcher only depend on this protocol; concrete
capabilities never need to share a base class.

Result format:
    ``execute`` returns a dict with at least ``success: bool``. Successful
    results carry their model-facing text in ``output``; failures carry
    ``error``. Capabilities may also raise; the dispatcher folds the
    exception into a failed outcome.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from agentfork.core.domain.cancellation import CancellationToken


class CapabilityProtocol(Protocol):
    """Contract for a capability an agent can call."""

    @property
    def name(self) -> str:
        """Unique snake_case identifier exposed to the model as the tool name."""
        ...

    @property
    def description(self) -> str:
        """Description the model uses to decide when to call the capability."""
        ...

    @property
    def parameters_schema(self) -> dict[str, Any]:
        """OpenAI function calling compatible JSON Schema for the arguments."""
        ...

    @property
    def supports_parallelism(self) -> bool:
        """Whether calls may run concurrently with other calls of the same turn."""
        ...

    async def execute(
        self,
        arguments: dict[str, Any],
        cancellation: CancellationToken,
    ) -> dict[str, Any]:
        """
        Run the capability.

        Args:
            arguments: Arguments produced by the model.
            cancellation: Token cancelled when the session deadline expires.
                Long-running capabilities should stop when it fires.

        Returns:
            Result dict with ``success`` and ``output`` or ``error``.
        """
        ...

    def validate_params(self, **kwargs: Any) -> tuple[bool, str | None]:
        """Validate arguments before execution.

        Returns:
            ``(True, None)`` when valid, ``(False, "error message")`` otherwise.
        """
        ...
