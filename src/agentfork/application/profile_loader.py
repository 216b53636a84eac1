"""
Profile Loader
==============

Loads YAML configuration profiles and validates them into
:class:`AgentforkSettings`.

Search order for a profile name:
1. ``{config_dir}/{profile}.yaml``
2. ``{config_dir}/custom/{profile}.yaml``

``config_dir`` defaults to ``$AGENTFORK_PROFILE_DIR`` or ``./configs``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import structlog
import yaml

from agentfork.core.domain.config_schema import AgentforkSettings, validate_settings
from agentfork.core.domain.errors import ConfigError

logger = structlog.get_logger(__name__)

PROFILE_DIR_ENV = "AGENTFORK_PROFILE_DIR"
DEFAULT_PROFILE_DIR = Path("configs")


def default_profile_dir() -> Path:
    return Path(os.environ.get(PROFILE_DIR_ENV) or DEFAULT_PROFILE_DIR)


class ProfileLoader:
    """Load and validate YAML configuration profiles.

    Args:
        config_dir: Root directory containing profile YAML files.
    """

    def __init__(self, config_dir: Path | None = None) -> None:
        self._config_dir = Path(config_dir) if config_dir is not None else default_profile_dir()
        self._logger = logger.bind(component="profile_loader")

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    def resolve_path(self, profile: str) -> Path:
        """Return the YAML file of ``profile``.

        Raises:
            FileNotFoundError: If neither the standard nor the custom file exists.
        """
        profile_path = self._config_dir / f"{profile}.yaml"
        if profile_path.exists():
            return profile_path

        custom_path = self._config_dir / "custom" / f"{profile}.yaml"
        if custom_path.exists():
            self._logger.debug(
                "profile_using_custom",
                profile=profile,
                custom_path=str(custom_path),
            )
            return custom_path
        raise FileNotFoundError(f"Profile not found: {profile_path} or {custom_path}")

    def load_raw(self, profile: str) -> dict[str, Any]:
        """Load a profile without validation."""
        profile_path = self.resolve_path(profile)
        try:
            with open(profile_path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(
                f"Invalid YAML in {profile_path}: {exc}",
                details={"file_path": str(profile_path)},
            ) from exc

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"Profile {profile_path} must contain a mapping",
                details={"file_path": str(profile_path)},
            )
        return data

    def load(self, profile: str) -> AgentforkSettings:
        """Load and validate a profile.

        Raises:
            FileNotFoundError: If the profile does not exist.
            ConfigError: If the YAML is malformed or fails validation.
        """
        data = self.load_raw(profile)
        settings = validate_settings(data, file_path=self.resolve_path(profile))
        self._logger.debug("profile_loaded", profile=profile, config_keys=list(data.keys()))
        return settings

    def load_safe(self, profile: str) -> AgentforkSettings:
        """Load a profile, falling back to the built-in defaults when it does not exist."""
        try:
            return self.load(profile)
        except FileNotFoundError:
            self._logger.debug("profile_not_found_using_defaults", profile=profile)
            return AgentforkSettings()
