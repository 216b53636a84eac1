"""
Base capability.

``BaseCapability`` lets a capability declare its name, description and JSON
Schema as class attributes and implement only ``_execute``. Arguments are
checked against the schema by ``validate_params`` and unexpected exceptions
from ``_execute`` come back as the standard error payload.

The registry and dispatcher only depend on ``CapabilityProtocol``; this base
is a convenience.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from agentfork.core.domain.cancellation import CancellationToken
from agentfork.core.domain.errors import CapabilityExecutionError, capability_error_payload

logger = structlog.get_logger(__name__)

_PYTHON_TYPES: dict[str, type | tuple[type, ...]] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": list,
    "object": dict,
}

_MAX_LOGGED_STRING = 200


def _check_value(name: str, value: Any, schema: Mapping[str, Any]) -> str | None:
    """Error message for one argument, or None when it matches its property schema."""
    type_name = schema.get("type")
    python_type = _PYTHON_TYPES.get(type_name) if type_name else None
    if python_type is not None and value is not None:
        # bool passes isinstance(int); only "boolean" accepts it
        if isinstance(value, bool) != (type_name == "boolean") or not isinstance(value, python_type):
            return f"Parameter '{name}' must be a {type_name}"

    choices = schema.get("enum")
    if choices is not None and value not in choices:
        return f"Parameter '{name}' must be one of {choices}"
    return None


def validate_arguments(
    schema: Mapping[str, Any], arguments: Mapping[str, Any]
) -> tuple[bool, str | None]:
    """
    Check ``arguments`` against an object schema.

    Only ``required``, property ``type`` and ``enum`` are enforced. Arguments
    without a property schema are accepted as they are.
    """
    if not schema:
        return True, None

    missing = next((name for name in schema.get("required", []) if name not in arguments), None)
    if missing is not None:
        return False, f"Missing required parameter: {missing}"

    properties = schema.get("properties", {})
    for name, value in arguments.items():
        if name in properties:
            error = _check_value(name, value, properties[name])
            if error:
                return False, error
    return True, None


def _loggable(arguments: Mapping[str, Any]) -> dict[str, Any]:
    return {
        key: value[:_MAX_LOGGED_STRING] + "..."
        if isinstance(value, str) and len(value) > _MAX_LOGGED_STRING
        else value
        for key, value in arguments.items()
    }


class BaseCapability:
    """Capability with class-level metadata and schema-based validation."""

    capability_name: str = ""
    capability_description: str = ""
    capability_parameters_schema: dict[str, Any] = {}
    capability_supports_parallelism: bool = False

    @property
    def name(self) -> str:
        return self.capability_name

    @property
    def description(self) -> str:
        return self.capability_description

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return self.capability_parameters_schema

    @property
    def supports_parallelism(self) -> bool:
        return self.capability_supports_parallelism

    def validate_params(self, **kwargs: Any) -> tuple[bool, str | None]:
        """Return ``(True, None)`` or ``(False, message)`` for the given arguments."""
        return validate_arguments(self.parameters_schema, kwargs)

    async def execute(
        self,
        arguments: dict[str, Any],
        cancellation: CancellationToken,
    ) -> dict[str, Any]:
        try:
            return await self._execute(cancellation, **arguments)
        except Exception as exc:
            logger.error(
                "capability_execute_failed",
                capability=self.name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return capability_error_payload(
                CapabilityExecutionError(
                    f"{self.name} failed: {exc}",
                    capability_name=self.name,
                    details={"arguments": _loggable(arguments)},
                )
            )

    async def _execute(self, cancellation: CancellationToken, **kwargs: Any) -> dict[str, Any]:
        """Capability logic. Must return a dict with at least ``success``."""
        raise NotImplementedError(f"{type(self).__name__} must implement _execute()")
