"""Shared helpers for CLI commands."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Coroutine, Generator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import click

from perennial.config.loader import ConfigLoader
from perennial.deploy.state import get_deployment_record, get_state_path
from perennial.lib.errors import ConfigError, DeploymentError, PerennialError
from perennial.lib.logging_config import get_logger
from perennial.models.config import ProjectConfig
from perennial.models.deployment_state import DeploymentRecord

logger = get_logger(__name__)

T = TypeVar("T")


@contextmanager
def handle_cli_errors() -> Generator[None, None, None]:
    """Report errors consistently and exit with status 1."""
    try:
        yield
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        click.secho("Error: Configuration error", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(1)
    except DeploymentError as e:
        logger.error(f"Deployment error: {e}")
        click.secho(f"Error: {e.operation} failed", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(1)
    except PerennialError as e:
        logger.error(f"{type(e).__name__}: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine to completion from a synchronous command."""
    return asyncio.run(coro)


@dataclass
class CliContext:
    """Options from the top-level command group."""

    config_path: Path
    verbose: bool = False
    quiet: bool = False

    def load_config(self) -> ProjectConfig:
        return ConfigLoader().load_project_config(self.config_path)

    def state_dir(self, config: ProjectConfig) -> Path:
        return config.state_path(self.config_path.resolve().parent)

    def state_path(self, config: ProjectConfig) -> Path:
        return get_state_path(self.state_dir(config))

    def require_record(self, config: ProjectConfig) -> DeploymentRecord:
        """Return the recorded deployment or fail with a hint.

        Raises:
            ConfigError: If nothing has been deployed
        """
        record = get_deployment_record(self.state_path(config), config.name)
        if record is None:
            raise ConfigError(
                field="deployment_state",
                message="No deployment record found. Run `perennial deploy` first.",
            )
        return record

    def echo(self, message: str = "", **style: Any) -> None:
        """Print progress output unless --quiet was given."""
        if self.quiet:
            return
        if style:
            click.secho(message, **style)
        else:
            click.echo(message)
