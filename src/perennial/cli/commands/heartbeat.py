"""``perennial heartbeat``: run the monitoring and self-healing loop."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path

import click

from perennial.cli.common import CliContext, handle_cli_errors, run_async
from perennial.collaborators import NotificationChannel
from perennial.compute.factory import create_manager
from perennial.compute.manager import ProviderManager
from perennial.deploy.state import (
    compute_config_hash,
    get_deployment_record,
    update_deployment_record,
)
from perennial.heartbeat import Heartbeat, HeartbeatDeps, create_heartbeat
from perennial.heartbeat.actions import LogChannel, Notifier, WebhookChannel
from perennial.lib.logging_config import get_logger
from perennial.models.config import ProjectConfig
from perennial.models.deployment_state import DeploymentRecord
from perennial.storage.local import LocalStorage

logger = get_logger(__name__)

STATE_SYNC_JOB = "state-sync"


def build_channel(config: ProjectConfig) -> NotificationChannel:
    webhook_url = config.notifications.webhook_url
    if webhook_url:
        return WebhookChannel(webhook_url, timeout=config.notifications.timeout)
    return LogChannel()


def make_state_sync(
    manager: ProviderManager, state_path: Path, name: str
) -> Callable[[], Awaitable[None]]:
    """Return a job persisting the active deployment whenever it changes."""

    async def sync_state() -> None:
        deployment = manager.deployment
        if deployment is None:
            return
        record = get_deployment_record(state_path, name)
        if record is not None and record.deployment.id == deployment.id:
            return
        update_deployment_record(
            state_path,
            name,
            DeploymentRecord(
                deployment=deployment,
                config_hash=compute_config_hash(deployment.config),
            ),
        )
        logger.info(f"Recorded active deployment {deployment.id} ({deployment.provider})")

    return sync_state


async def _run_once(heartbeat: Heartbeat) -> None:
    for name in heartbeat.scheduler.jobs:
        try:
            await heartbeat.scheduler.run_now(name)
        except Exception:
            logger.exception(f"Heartbeat job '{name}' failed")


async def _run_forever(heartbeat: Heartbeat) -> None:
    heartbeat.scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await heartbeat.scheduler.stop()


@click.command()
@click.option(
    "--once",
    is_flag=True,
    help="Run every job once and exit",
)
@click.pass_obj
def heartbeat(ctx: CliContext, once: bool) -> None:
    """Monitor the deployment and self-heal until interrupted."""
    with handle_cli_errors():
        config = ctx.load_config()
        state_path = ctx.state_path(config)

        manager = create_manager(config)
        record = get_deployment_record(state_path, config.name)
        if record is not None:
            manager.adopt(record.deployment)
        else:
            logger.warning("No deployment recorded; health checks will be skipped")

        notifier = Notifier(build_channel(config))
        storage = LocalStorage(ctx.state_dir(config))
        hb = create_heartbeat(
            config.heartbeat,
            HeartbeatDeps(manager=manager, notifier=notifier, storage=storage),
        )
        hb.scheduler.register(
            STATE_SYNC_JOB,
            make_state_sync(manager, state_path, config.name),
            config.heartbeat.health_interval,
        )

        if once:
            run_async(_run_once(hb))
            return

        ctx.echo(f"Heartbeat running with jobs: {', '.join(hb.scheduler.jobs)}")
        try:
            run_async(_run_forever(hb))
        except KeyboardInterrupt:
            ctx.echo("Heartbeat stopped.")
