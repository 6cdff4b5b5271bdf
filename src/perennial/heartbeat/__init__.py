"""Heartbeat: scheduled monitors and recovery actions.

``create_heartbeat`` wires the monitors and actions into a scheduler that is
ready to start.
"""

from __future__ import annotations

from dataclasses import dataclass

from perennial.collaborators import PeerClient, Storage
from perennial.compute.manager import ProviderManager
from perennial.heartbeat.actions import Notifier, SelfHealer, Summarizer
from perennial.heartbeat.monitors import (
    ConnectivityMonitor,
    ExternalBalanceMonitor,
    FundingMonitor,
    HealthMonitor,
)
from perennial.heartbeat.scheduler import (
    HeartbeatScheduler,
    parse_interval,
    parse_schedule,
)
from perennial.models.config import HeartbeatConfig


@dataclass
class HeartbeatDeps:
    """Collaborators the heartbeat runs against."""

    manager: ProviderManager
    notifier: Notifier
    storage: Storage | None = None
    peer_client: PeerClient | None = None


@dataclass
class Heartbeat:
    """A wired scheduler plus handles to its stateful parts."""

    scheduler: HeartbeatScheduler
    health_monitor: HealthMonitor
    self_healer: SelfHealer
    summarizer: Summarizer


def create_heartbeat(config: HeartbeatConfig, deps: HeartbeatDeps) -> Heartbeat:
    """Build the scheduler with every applicable monitor registered.

    Jobs: ``health``, ``funding``, ``connectivity`` (only with a peer client),
    ``external-balance`` (only with an endpoint) and ``daily-summary``.
    """
    scheduler = HeartbeatScheduler()
    self_healer = SelfHealer(
        deps.manager,
        deps.storage,
        deps.notifier,
        max_retries=config.max_self_heal_retries,
    )
    summarizer = Summarizer(
        deps.storage,
        deps.notifier,
        inference_endpoint=config.summary_inference_endpoint,
    )
    health_monitor = HealthMonitor(
        deps.manager, self_healer, max_failures=config.max_health_failures
    )

    scheduler.register("health", health_monitor, config.health_interval)
    scheduler.register(
        "funding",
        FundingMonitor(deps.manager, deps.notifier, threshold=config.funding_threshold),
        config.funding_interval,
    )
    if deps.peer_client is not None:
        scheduler.register(
            "connectivity",
            ConnectivityMonitor(deps.peer_client, min_peers=config.min_peers),
            config.connectivity_interval,
        )
    if config.external_balance_endpoint:
        scheduler.register(
            "external-balance",
            ExternalBalanceMonitor(
                config.external_balance_endpoint,
                threshold=config.external_balance_threshold,
            ),
            config.external_balance_interval,
        )
    scheduler.register("daily-summary", summarizer.summarize, config.summary_interval)

    return Heartbeat(
        scheduler=scheduler,
        health_monitor=health_monitor,
        self_healer=self_healer,
        summarizer=summarizer,
    )


__all__ = [
    "Heartbeat",
    "HeartbeatDeps",
    "HeartbeatScheduler",
    "create_heartbeat",
    "parse_interval",
    "parse_schedule",
]
