"""Environment variable handling for Perennial configuration files.

Supports ``${VAR}`` and ``${VAR:-default}`` references inside perennial.yaml
and loading a ``.env`` file that sits next to the configuration.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

from dotenv import load_dotenv

from perennial.lib.errors import ConfigError

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def substitute_env_vars(text: str, env: dict[str, str] | None = None) -> str:
    """Replace ``${VAR}`` references with environment values.

    Args:
        text: Raw configuration text
        env: Mapping to resolve from (defaults to ``os.environ``)

    Returns:
        Text with every reference substituted

    Raises:
        ConfigError: If a referenced variable is unset and has no default
    """
    source = os.environ if env is None else env

    def _replace(match: re.Match[str]) -> str:
        name, default = match.group(1), match.group(2)
        value = source.get(name)
        if value is not None:
            return value
        if default is not None:
            return default
        raise ConfigError(
            name,
            f"Environment variable '{name}' is referenced but not set. "
            f"Set it or provide a default with ${{{name}:-value}}.",
        )

    return ENV_VAR_PATTERN.sub(_replace, text)


def load_env_file(config_dir: Path) -> bool:
    """Load ``.env`` from the configuration directory without overriding.

    Returns:
        True if a file was found and loaded
    """
    env_path = config_dir / ".env"
    if not env_path.is_file():
        return False
    return load_dotenv(env_path, override=False)
