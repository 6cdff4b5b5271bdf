"""Configuration loading and validation for Perennial projects.

Main components:
- ConfigLoader: Load and validate perennial.yaml files
- Environment variable substitution (${VAR_NAME} pattern)
"""

from perennial.config.env_loader import load_env_file, substitute_env_vars
from perennial.config.loader import ConfigLoader

__all__ = [
    "ConfigLoader",
    "load_env_file",
    "substitute_env_vars",
]
