"""Configuration loader for Perennial projects.

This module provides the ConfigLoader class for loading, parsing, and
validating perennial.yaml files.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from perennial.config.defaults import ENV_OVERRIDES, MARKETPLACE_ENDPOINT_ENV
from perennial.config.env_loader import load_env_file, substitute_env_vars
from perennial.lib.errors import ConfigError
from perennial.lib.logging_config import get_logger
from perennial.models.config import ProjectConfig, ProviderType

logger = get_logger(__name__)


def flatten_validation_errors(exc: PydanticValidationError) -> list[str]:
    """Turn a pydantic ValidationError into one readable line per field."""
    messages: list[str] = []
    for error in exc.errors():
        loc = error.get("loc", ())
        field_path = ".".join(str(part) for part in loc) if loc else "config"
        msg = error.get("msg", "Unknown error")
        if error.get("type") == "value_error":
            messages.append(
                f"Field '{field_path}': {msg} (received: {error.get('input')!r})"
            )
        else:
            messages.append(f"Field '{field_path}': {msg}")
    return messages or ["Validation failed with unknown error"]


def _set_path(data: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    target = data
    for key in path[:-1]:
        existing = target.get(key)
        if not isinstance(existing, dict):
            existing = {}
            target[key] = existing
        target = existing
    target[path[-1]] = value


def apply_env_overrides(
    data: dict[str, Any], env: os._Environ[str] | dict[str, str]
) -> dict[str, Any]:
    """Apply PERENNIAL_* environment overrides to raw config data (in-place)."""
    for env_name, path in ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value:
            logger.debug(f"Applying {env_name} override to {'.'.join(path)}")
            _set_path(data, path, value)

    endpoint = env.get(MARKETPLACE_ENDPOINT_ENV)
    if endpoint:
        for entry in data.get("providers") or []:
            if (
                isinstance(entry, dict)
                and entry.get("type") == ProviderType.MARKETPLACE.value
            ):
                section = entry.get("marketplace") or {}
                section["rest_endpoint"] = endpoint
                entry["marketplace"] = section
    return data


class ConfigLoader:
    """Loads and validates project configuration from YAML files.

    This class handles:
    - Loading a sibling ``.env`` file
    - Environment variable substitution
    - PERENNIAL_* environment overrides
    - Converting validation errors into human-readable messages
    """

    def __init__(self, env: dict[str, str] | None = None) -> None:
        """Initialize the loader.

        Args:
            env: Environment mapping used for substitution and overrides
                (defaults to ``os.environ``)
        """
        self._env = env

    @property
    def env(self) -> os._Environ[str] | dict[str, str]:
        return os.environ if self._env is None else self._env

    def parse_yaml(self, file_path: str | Path) -> dict[str, Any]:
        """Read a YAML file with environment substitution.

        Raises:
            ConfigError: If the file cannot be read or parsed
        """
        path = Path(file_path)
        try:
            raw_text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(
                "config_file",
                f"Configuration file not found at {path}. "
                "Create one or pass --config.",
            ) from e

        substituted = substitute_env_vars(raw_text, dict(self.env))
        try:
            content = yaml.safe_load(substituted)
        except yaml.YAMLError as e:
            raise ConfigError(
                "yaml_parse", f"Failed to parse YAML file {path}: {e}"
            ) from e

        if content is None:
            return {}
        if not isinstance(content, dict):
            raise ConfigError(
                "yaml_parse", f"Top level of {path} must be a mapping"
            )
        return content

    def load_project_config(self, file_path: str | Path) -> ProjectConfig:
        """Load and validate a perennial.yaml file.

        Args:
            file_path: Path to the configuration file

        Returns:
            Validated ProjectConfig

        Raises:
            ConfigError: If the file is missing, unparsable, or invalid
        """
        path = Path(file_path).expanduser()
        if self._env is None and load_env_file(path.parent):
            logger.debug(f"Loaded environment from {path.parent / '.env'}")

        data = apply_env_overrides(self.parse_yaml(path), self.env)

        try:
            config = ProjectConfig(**data)
        except PydanticValidationError as e:
            error_text = "\n".join(flatten_validation_errors(e))
            raise ConfigError(
                "project_validation",
                f"Invalid configuration in {path}:\n{error_text}",
            ) from e

        logger.debug(
            f"Loaded configuration from {path}: "
            f"{len(config.providers)} provider(s), image={config.workload.image}"
        )
        return config
