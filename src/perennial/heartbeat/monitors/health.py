"""Deployment health monitor."""

from __future__ import annotations

from typing import Protocol

from perennial.compute.manager import ProviderManager
from perennial.lib.logging_config import get_logger

logger = get_logger(__name__)


class Healer(Protocol):
    async def heal(self) -> bool: ...


class HealthMonitor:
    """Probes the active deployment and triggers self-heal on sustained failure.

    After ``max_failures`` consecutive unhealthy probes the healer runs once
    and the counter starts over, so a failed heal waits for the threshold
    again instead of re-triggering on the next tick.
    """

    def __init__(
        self, manager: ProviderManager, healer: Healer, max_failures: int = 3
    ) -> None:
        self._manager = manager
        self._healer = healer
        self.max_failures = max_failures
        self.consecutive_failures = 0

    def reset(self) -> None:
        self.consecutive_failures = 0

    async def __call__(self) -> None:
        deployment = self._manager.deployment
        if deployment is None:
            return

        provider = self._manager.current_provider
        result = await provider.health_check(deployment)
        if result.healthy:
            if self.consecutive_failures:
                logger.info(f"{deployment.id} healthy again on {provider.name}")
            self.consecutive_failures = 0
            return

        self.consecutive_failures += 1
        logger.warning(
            f"Health check failed ({self.consecutive_failures}/{self.max_failures}): "
            f"{result.message or 'unhealthy'}"
        )
        if self.consecutive_failures >= self.max_failures:
            logger.error("Max health failures reached, triggering self-heal")
            self.consecutive_failures = 0
            await self._healer.heal()
