"""``perennial logs``: print recent workload log lines."""

from __future__ import annotations

import click

from perennial.cli.common import CliContext, handle_cli_errors, run_async
from perennial.compute.factory import create_manager
from perennial.lib.errors import DeploymentError


@click.command()
@click.option("--lines", "-n", type=int, default=100, show_default=True)
@click.pass_obj
def logs(ctx: CliContext, lines: int) -> None:
    """Show the last log lines of the deployed workload."""
    with handle_cli_errors():
        config = ctx.load_config()
        record = ctx.require_record(config)

        manager = create_manager(config)
        manager.adopt(record.deployment)
        provider = manager.current_provider
        if not provider.supports_logs:
            raise DeploymentError(
                operation="logs",
                message=f"Provider {provider.name} does not support log retrieval",
            )

        for line in run_async(provider.get_logs(record.deployment, lines)):
            click.echo(line)
