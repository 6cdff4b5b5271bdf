"""``perennial fund``: show balances and how to top them up."""

from __future__ import annotations

import math

import click

from perennial.cli.commands.status import format_balance
from perennial.cli.common import CliContext, handle_cli_errors, run_async
from perennial.compute.factory import create_manager
from perennial.compute.manager import ProviderManager
from perennial.config.defaults import MONTHLY_COST_ESTIMATE
from perennial.lib.logging_config import get_logger
from perennial.models.deployment import Balance, FundingResult

logger = get_logger(__name__)


def estimate_runway_months(balance: Balance | None) -> float | None:
    """Months the balance lasts at the estimated monthly cost, if known."""
    if balance is None or math.isinf(balance.amount):
        return None
    return balance.amount / MONTHLY_COST_ESTIMATE


async def _gather(
    manager: ProviderManager,
) -> list[tuple[str, Balance | None, FundingResult]]:
    rows = []
    for provider in manager.providers:
        try:
            balance: Balance | None = await provider.get_balance()
        except Exception as e:
            logger.warning(f"Balance query on {provider.name} failed: {e}")
            balance = None
        rows.append((provider.name, balance, await provider.fund(0)))
    return rows


@click.command()
@click.pass_obj
def fund(ctx: CliContext) -> None:
    """Show each provider's balance and funding instructions."""
    with handle_cli_errors():
        config = ctx.load_config()
        manager = create_manager(config)
        rows = run_async(_gather(manager))

        click.echo()
        click.secho("Funding", bold=True)
        for name, balance, result in rows:
            click.echo()
            click.secho(f"  {name}", bold=True)
            click.echo(f"    Balance: {format_balance(balance)}")
            runway = estimate_runway_months(balance)
            if runway is not None:
                click.echo(
                    f"    Runway:  ~{runway:.1f} months "
                    f"(at ~{MONTHLY_COST_ESTIMATE:g} {balance.denom}/month)"
                )
            color = "green" if result.success else "red"
            click.secho(f"    {result.message}", fg=color)
        click.echo()
