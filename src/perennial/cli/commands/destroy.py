"""``perennial destroy``: tear down the recorded deployment."""

from __future__ import annotations

import sys

import click

from perennial.cli.common import CliContext, handle_cli_errors, run_async
from perennial.compute.factory import create_manager
from perennial.deploy.state import remove_deployment_record
from perennial.storage.local import LocalStorage


@click.command()
@click.option(
    "--wipe-memory",
    is_flag=True,
    help="Also delete the local memory store",
)
@click.option(
    "--force",
    is_flag=True,
    help="Skip confirmation prompt",
)
@click.pass_obj
def destroy(ctx: CliContext, wipe_memory: bool, force: bool) -> None:
    """Destroy the deployed workload and forget its record."""
    with handle_cli_errors():
        config = ctx.load_config()
        record = ctx.require_record(config)
        deployment = record.deployment

        if not force:
            confirm = click.confirm(
                f"Destroy deployment '{deployment.id}' on {deployment.provider}?",
                default=False,
            )
            if not confirm:
                click.secho("Destroy aborted.", fg="yellow")
                sys.exit(0)

        manager = create_manager(config)
        manager.adopt(deployment)
        run_async(manager.destroy())
        remove_deployment_record(ctx.state_path(config), config.name)

        removed = None
        if wipe_memory:
            removed = LocalStorage(ctx.state_dir(config)).wipe()

        if ctx.quiet:
            return
        click.echo()
        click.secho("Deployment destroyed.", fg="green", bold=True)
        click.echo(f"  ID:        {deployment.id}")
        click.echo(f"  Provider:  {deployment.provider}")
        if removed is not None:
            click.echo(f"  Memory:    {removed} entries wiped")
        click.echo()
