"""Tests for profile configuration schema validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from agentfork.core.domain.config_schema import (
    AgentforkSettings,
    ConfigValidationError,
    validate_settings,
)
from agentfork.core.domain.errors import ConfigError


class TestValidateSettings:
    def test_empty_config_uses_defaults(self) -> None:
        settings = validate_settings(None)
        assert settings == AgentforkSettings()
        assert settings.task_agent.default_max_turns == 20
        assert settings.task_agent.default_timeout_ms == 300_000
        assert settings.task_agent.warning_lead_ms == 30_000
        assert settings.orchestrator.max_steps == 30

    def test_partial_sections_merge_with_defaults(self) -> None:
        settings = validate_settings({"task_agent": {"default_max_turns": 5}})
        assert settings.task_agent.default_max_turns == 5
        assert settings.task_agent.max_parallel_calls == 1

    def test_unknown_section_is_rejected(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_settings({"agnet": {"max_steps": 3}}, file_path=Path("configs/dev.yaml"))

        error = exc_info.value
        assert isinstance(error, ConfigError)
        assert error.field_path == "agnet"
        assert "configs/dev.yaml" in error.message

    def test_non_positive_turns_are_rejected(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_settings({"task_agent": {"default_max_turns": 0}})
        assert exc_info.value.field_path == "task_agent.default_max_turns"

    def test_invalid_log_level_is_rejected(self) -> None:
        with pytest.raises(ConfigValidationError):
            validate_settings({"logging": {"level": "LOUD"}})
