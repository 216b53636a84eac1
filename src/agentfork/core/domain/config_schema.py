"""
Configuration Schema Validation

Pydantic models for profile YAML files (``configs/<profile>.yaml``).
Every section is optional; missing values fall back to the defaults below.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agentfork.core.domain.errors import ConfigError
from agentfork.core.domain.models import DEFAULT_MAX_TURNS, DEFAULT_TIMEOUT_MS


class LLMSettings(BaseModel):
    """Language model service settings."""

    model_config = ConfigDict(extra="forbid")

    config_path: str = Field(
        "configs/llm_config.yaml",
        description="Path to the LLM service YAML (model aliases, retry policy)",
    )
    model: str = Field(
        "main",
        description="Model alias used by all agents",
    )


class TaskAgentSettings(BaseModel):
    """Limits and behavior of spawned task agents."""

    model_config = ConfigDict(extra="forbid")

    default_max_turns: int = Field(
        DEFAULT_MAX_TURNS,
        gt=0,
        le=1000,
        description="Turn budget when the spawn request does not set one",
    )
    default_timeout_ms: int = Field(
        DEFAULT_TIMEOUT_MS,
        gt=0,
        description="Wall-clock budget when the spawn request does not set one",
    )
    warning_lead_ms: int = Field(
        30_000,
        ge=0,
        description="How long before the deadline the agent is warned",
    )
    max_parallel_calls: int = Field(
        1,
        ge=1,
        le=32,
        description="Concurrent capability calls per turn (1 = sequential)",
    )


class OrchestratorSettings(BaseModel):
    """Settings of the primary agent loop."""

    model_config = ConfigDict(extra="forbid")

    max_steps: int = Field(
        30,
        gt=0,
        le=1000,
        description="Maximum turns of the primary agent per mission",
    )


class CapabilitySettings(BaseModel):
    """Settings shared by the concrete capabilities."""

    model_config = ConfigDict(extra="forbid")

    work_dir: str = Field(
        ".",
        description="Root directory for file and shell capabilities",
    )
    summarize_threshold_chars: int = Field(
        10_000,
        gt=0,
        description="Shell output above this size is summarized",
    )
    shell_timeout_seconds: int = Field(
        30,
        gt=0,
        le=3600,
        description="Timeout of a single shell command",
    )


class LoggingSettings(BaseModel):
    """Logging settings."""

    model_config = ConfigDict(extra="forbid")

    level: str = Field(
        "WARNING",
        description="Log level name",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )


class AgentforkSettings(BaseModel):
    """
    Schema for profile configuration files.

    Unknown top-level sections are rejected so typos surface early.
    """

    model_config = ConfigDict(extra="forbid")

    llm: LLMSettings = Field(default_factory=LLMSettings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    task_agent: TaskAgentSettings = Field(default_factory=TaskAgentSettings)
    capabilities: CapabilitySettings = Field(default_factory=CapabilitySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


class ConfigValidationError(ConfigError):
    """
    Error raised when configuration validation fails.

    Includes file path and detailed error message.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[Path] = None,
        field_path: Optional[str] = None,
    ) -> None:
        self.file_path = file_path
        self.field_path = field_path

        parts = []
        if file_path:
            parts.append(f"File: {file_path}")
        if field_path:
            parts.append(f"Field: {field_path}")
        parts.append(message)

        super().__init__(
            " | ".join(parts),
            details={"file_path": str(file_path) if file_path else None},
        )


def validate_settings(
    data: dict[str, Any] | None,
    file_path: Optional[Path] = None,
) -> AgentforkSettings:
    """
    Validate profile configuration data.

    Args:
        data: Configuration dictionary (``None`` for an empty file)
        file_path: Optional file path for error messages

    Returns:
        Validated AgentforkSettings

    Raises:
        ConfigValidationError: If validation fails
    """
    try:
        return AgentforkSettings.model_validate(data or {})
    except ValidationError as e:
        first = e.errors()[0]
        field_path = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigValidationError(
            first.get("msg", str(e)),
            file_path=file_path,
            field_path=field_path or None,
        ) from e
