"""Low-balance monitor for the active provider."""

from __future__ import annotations

import math

from perennial.collaborators import Priority
from perennial.compute.manager import ProviderManager
from perennial.heartbeat.actions.notify import Notifier
from perennial.lib.logging_config import get_logger

logger = get_logger(__name__)


class FundingMonitor:
    """Alerts when the active provider's balance drops below a threshold."""

    def __init__(
        self, manager: ProviderManager, notifier: Notifier, threshold: float = 1.0
    ) -> None:
        self._manager = manager
        self._notifier = notifier
        self.threshold = threshold

    async def __call__(self) -> None:
        provider = self._manager.current_provider
        balance = await provider.get_balance()
        if math.isinf(balance.amount):
            return

        logger.debug(f"{provider.name} balance: {balance.amount} {balance.denom}")
        if balance.amount < self.threshold:
            logger.warning(
                f"Low balance on {provider.name}: {balance.amount} {balance.denom}"
            )
            await self._notifier.notify(
                f"Low {balance.denom} balance: {balance.amount:g} {balance.denom} "
                f"(threshold: {self.threshold:g}). "
                "Top up soon to avoid compute interruption.",
                Priority.HIGH,
            )
