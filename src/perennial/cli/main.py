"""Entry point for the ``perennial`` command."""

from __future__ import annotations

from pathlib import Path

import click

from perennial import __version__
from perennial.cli.commands.deploy import deploy
from perennial.cli.commands.destroy import destroy
from perennial.cli.commands.fund import fund
from perennial.cli.commands.heartbeat import heartbeat
from perennial.cli.commands.logs import logs
from perennial.cli.commands.status import status
from perennial.cli.common import CliContext
from perennial.config.defaults import DEFAULT_CONFIG_FILE
from perennial.lib.logging_config import setup_logging


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_FILE,
    envvar="PERENNIAL_CONFIG",
    show_default=True,
    help="Path to the project configuration file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output")
@click.version_option(__version__, prog_name="perennial")
@click.pass_context
def main(ctx: click.Context, config_path: Path, verbose: bool, quiet: bool) -> None:
    """Keep a containerized workload alive across compute providers."""
    setup_logging(verbose=verbose, quiet=quiet)
    ctx.obj = CliContext(config_path=config_path, verbose=verbose, quiet=quiet)


main.add_command(deploy)
main.add_command(status)
main.add_command(fund)
main.add_command(destroy)
main.add_command(heartbeat)
main.add_command(logs)


if __name__ == "__main__":
    main()
