"""
Capability Registry

Name-to-capability mapping owned by one agent session. Task agents get a
registry derived from the primary one: the spawn capability removed and the
return capability added. Derivation never mutates the source.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from agentfork.core.interfaces.capabilities import CapabilityProtocol


class CapabilityRegistry:
    """Ordered mapping of capability names to capabilities."""

    def __init__(self, capabilities: Iterable[CapabilityProtocol] = ()) -> None:
        self._capabilities: dict[str, CapabilityProtocol] = {}
        for capability in capabilities:
            self.register(capability)

    def register(self, capability: CapabilityProtocol) -> None:
        """Add a capability, replacing any capability with the same name."""
        self._capabilities[capability.name] = capability

    def get(self, name: str) -> CapabilityProtocol | None:
        return self._capabilities.get(name)

    def has(self, name: str) -> bool:
        return name in self._capabilities

    def all(self) -> list[CapabilityProtocol]:
        """Capabilities in registration order."""
        return list(self._capabilities.values())

    def names(self) -> list[str]:
        return list(self._capabilities)

    def copy(self) -> "CapabilityRegistry":
        return CapabilityRegistry(self._capabilities.values())

    def derive(
        self,
        exclude: set[str] | frozenset[str] = frozenset(),
        add: Sequence[CapabilityProtocol] = (),
    ) -> "CapabilityRegistry":
        """
        Create an isolated registry for a child session.

        Args:
            exclude: Names dropped from the copy.
            add: Capabilities added after exclusion. An added capability
                replaces one with the same name, so every name appears once.

        Returns:
            A new registry. ``self`` is left untouched.
        """
        derived = CapabilityRegistry(
            capability
            for name, capability in self._capabilities.items()
            if name not in exclude
        )
        for capability in add:
            derived.register(capability)
        return derived

    def __len__(self) -> int:
        return len(self._capabilities)

    def __contains__(self, name: object) -> bool:
        return name in self._capabilities
