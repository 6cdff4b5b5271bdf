"""``perennial status``: show the recorded deployment and provider balances."""

from __future__ import annotations

import math

import click

from perennial.cli.common import CliContext, handle_cli_errors, run_async
from perennial.compute.factory import create_manager
from perennial.compute.manager import ProviderManager
from perennial.deploy.state import update_deployment_record
from perennial.lib.logging_config import get_logger
from perennial.models.deployment import Balance, DeploymentStatus, HealthCheckResult

logger = get_logger(__name__)


def format_balance(balance: Balance | None) -> str:
    if balance is None:
        return "unavailable"
    if math.isinf(balance.amount):
        return "unlimited"
    return f"{balance.amount:.6g} {balance.denom}"


async def collect_balances(manager: ProviderManager) -> dict[str, Balance | None]:
    """Query every provider's balance; failures are reported as None."""
    balances: dict[str, Balance | None] = {}
    for provider in manager.providers:
        try:
            balances[provider.name] = await provider.get_balance()
        except Exception as e:
            logger.warning(f"Balance query on {provider.name} failed: {e}")
            balances[provider.name] = None
    return balances


async def _probe(
    manager: ProviderManager,
) -> tuple[DeploymentStatus, HealthCheckResult, dict[str, Balance | None]]:
    status = await manager.status()
    health = await manager.health_check()
    balances = await collect_balances(manager)
    return status, health, balances


@click.command()
@click.pass_obj
def status(ctx: CliContext) -> None:
    """Show the deployment's status, health and provider balances."""
    with handle_cli_errors():
        config = ctx.load_config()
        record = ctx.require_record(config)

        manager = create_manager(config)
        manager.adopt(record.deployment)
        current, health, balances = run_async(_probe(manager))

        if current != DeploymentStatus.UNKNOWN and current != record.deployment.status:
            deployment = record.deployment.model_copy(update={"status": current})
            record = update_deployment_record(
                ctx.state_path(config),
                config.name,
                record.model_copy(update={"deployment": deployment}),
            )

        if ctx.quiet:
            click.echo(current.value)
            return

        deployment = record.deployment
        health_text = "healthy" if health.healthy else "unhealthy"
        if health.message:
            health_text += f" ({health.message})"

        click.echo()
        click.secho("Deployment Status", bold=True)
        click.echo(f"  ID:        {deployment.id}")
        click.echo(f"  Provider:  {deployment.provider}")
        click.echo(f"  Image:     {deployment.config.image}")
        click.echo(f"  Status:    {current.value}")
        click.echo(f"  Health:    {health_text}")
        if health.latency_ms is not None:
            click.echo(f"  Latency:   {health.latency_ms:.0f} ms")
        click.echo(f"  Created:   {deployment.created_at.isoformat()}")
        if record.updated_at:
            click.echo(f"  Updated:   {record.updated_at.isoformat()}")
        click.echo()
        click.secho("Balances", bold=True)
        for name, balance in balances.items():
            click.echo(f"  {name:<16} {format_balance(balance)}")
        click.echo()
