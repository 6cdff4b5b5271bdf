"""``perennial deploy``: launch the workload on the best available provider."""

from __future__ import annotations

import sys

import click

from perennial.cli.common import CliContext, handle_cli_errors, run_async
from perennial.compute.direct_host.commands import build_deploy_command
from perennial.compute.direct_host.provider import new_container_name
from perennial.compute.factory import create_manager
from perennial.compute.marketplace.manifest import manifest_version, render_manifest
from perennial.deploy.state import (
    compute_config_hash,
    get_deployment_record,
    update_deployment_record,
)
from perennial.lib.errors import ConfigError
from perennial.lib.logging_config import get_logger
from perennial.models.config import ProjectConfig, ProviderEntry, ProviderType
from perennial.models.deployment_state import DeploymentRecord

logger = get_logger(__name__)


def _selected_entries(config: ProjectConfig, name: str | None) -> list[ProviderEntry]:
    entries = config.sorted_providers()
    if name is None:
        return entries
    selected = [entry for entry in entries if entry.display_name == name]
    if not selected:
        names = ", ".join(entry.display_name for entry in entries)
        raise ConfigError("providers", f"Unknown provider '{name}'. Configured: {names}")
    return selected


def _show_dry_run(config: ProjectConfig, entries: list[ProviderEntry]) -> None:
    click.secho("[DRY RUN] Would try providers in order:", fg="yellow")
    for entry in entries:
        click.echo()
        click.secho(
            f"{entry.display_name} ({entry.type.value}, priority {entry.priority})",
            bold=True,
        )
        if entry.type == ProviderType.MARKETPLACE and entry.marketplace is not None:
            manifest = render_manifest(
                config.workload,
                pricing_amount=entry.marketplace.pricing_amount,
                denom=entry.marketplace.denom,
            )
            click.echo(f"  Version: {manifest_version(manifest)}")
            for line in manifest.splitlines():
                click.echo(f"  {line}")
        elif entry.direct_host is not None:
            command = build_deploy_command(
                config.workload, new_container_name(), entry.direct_host.volume_name
            )
            click.echo(f"  Host:    {entry.direct_host.username}@{entry.direct_host.host}")
            click.echo(f"  Command: {command}")
    click.echo()
    click.secho("[DRY RUN] No deployment was created", fg="yellow")


@click.command()
@click.option(
    "--provider",
    "provider_name",
    type=str,
    default=None,
    help="Deploy only on the named provider",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be done without executing",
)
@click.pass_obj
def deploy(ctx: CliContext, provider_name: str | None, dry_run: bool) -> None:
    """Deploy the workload, failing over through providers by priority.

    Example:

        perennial deploy

        perennial deploy --provider direct-host --dry-run
    """
    with handle_cli_errors():
        config = ctx.load_config()
        entries = _selected_entries(config, provider_name)

        ctx.echo()
        ctx.echo("Deploy Configuration:", bold=True)
        ctx.echo(f"  Name:      {config.name}")
        ctx.echo(f"  Image:     {config.workload.image}")
        ctx.echo(f"  Resources: {config.workload.cpu:g} CPU, {config.workload.memory}")
        ctx.echo(f"  Providers: {', '.join(e.display_name for e in entries)}")
        ctx.echo()

        if dry_run:
            _show_dry_run(config, entries)
            sys.exit(0)

        state_path = ctx.state_path(config)
        existing = get_deployment_record(state_path, config.name)
        if existing is not None:
            raise ConfigError(
                field="deployment_state",
                message=(
                    f"Deployment {existing.deployment.id} on "
                    f"{existing.provider} is already recorded. "
                    "Run `perennial destroy` first."
                ),
            )

        manager = create_manager(config, only=provider_name)
        deployment = run_async(manager.deploy(config.workload))

        record = update_deployment_record(
            state_path,
            config.name,
            DeploymentRecord(
                deployment=deployment,
                config_hash=compute_config_hash(config.workload),
            ),
        )

        if ctx.quiet:
            click.echo(deployment.id)
            return

        click.echo()
        click.secho("Deployment Successful!", fg="green", bold=True)
        click.echo(f"  ID:        {deployment.id}")
        click.echo(f"  Provider:  {deployment.provider}")
        click.echo(f"  Status:    {deployment.status.value}")
        for key in ("provider_uri", "container_name", "host"):
            if key in deployment.metadata:
                click.echo(f"  {key}: {deployment.metadata[key]}")
        if record.created_at:
            click.echo(f"  Created:   {record.created_at.isoformat()}")
        click.echo()
