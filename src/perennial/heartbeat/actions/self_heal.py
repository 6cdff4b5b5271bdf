"""Self-healing: redeploy the workload after sustained health failures."""

from __future__ import annotations

from dataclasses import dataclass

from perennial.collaborators import Priority, Storage
from perennial.compute.manager import ProviderManager
from perennial.heartbeat.actions.notify import Notifier
from perennial.lib.logging_config import get_logger
from perennial.models.deployment import Deployment

logger = get_logger(__name__)


@dataclass
class SelfHealState:
    """Retry bookkeeping shared across heal invocations."""

    retry_count: int = 0

    def reset(self) -> None:
        self.retry_count = 0


class SelfHealer:
    """Redeploys the workload, first in place and then on any provider.

    Each call to ``heal`` consumes one attempt from the retry budget. A
    successful redeploy resets the budget; once it is used up every call
    only sends a high-priority alert until ``reset`` is called.
    """

    def __init__(
        self,
        manager: ProviderManager,
        storage: Storage | None,
        notifier: Notifier,
        max_retries: int = 5,
        state: SelfHealState | None = None,
    ) -> None:
        self._manager = manager
        self._storage = storage
        self._notifier = notifier
        self.max_retries = max_retries
        self.state = state or SelfHealState()

    def reset(self) -> None:
        """Restore the full retry budget."""
        self.state.reset()

    async def _sync_memory(self) -> None:
        if self._storage is None:
            return
        try:
            await self._storage.sync_from_relays()
        except Exception as e:
            logger.warning(f"Memory sync after self-heal failed: {e}")

    async def _healed(self, deployment: Deployment, how: str) -> None:
        self.state.reset()
        await self._sync_memory()
        await self._notifier.notify(
            f"Self-healed: {how} {deployment.provider} ({deployment.id}).",
            Priority.NORMAL,
        )

    async def heal(self) -> bool:
        """Run one self-heal attempt.

        Returns:
            True if the workload was redeployed
        """
        if self.state.retry_count >= self.max_retries:
            logger.error("Self-heal retries exhausted; giving up")
            await self._notifier.notify(
                f"Self-heal failed after {self.max_retries} attempts. "
                "Manual intervention required.",
                Priority.HIGH,
            )
            return False

        self.state.retry_count += 1
        attempt = self.state.retry_count
        logger.info(f"Self-heal attempt {attempt}/{self.max_retries}")

        config = self._manager.last_config
        if config is None:
            logger.error("Self-heal has no deployment config to redeploy")
        else:
            current = self._manager.active_index
            try:
                deployment = await self._manager.deploy_on(current, config)
            except Exception as e:
                logger.warning(
                    f"Redeploy on {self._manager.current_provider.name} failed: {e}"
                )
            else:
                await self._healed(deployment, "redeployed on")
                return True

            for index, provider in enumerate(self._manager.providers):
                try:
                    deployment = await self._manager.deploy_on(index, config)
                except Exception as e:
                    logger.warning(f"Self-heal failover to {provider.name} failed: {e}")
                    continue
                await self._healed(deployment, "failed over to")
                return True

        logger.error(f"Self-heal attempt {attempt}/{self.max_retries} failed")
        await self._notifier.notify(
            f"Self-heal attempt {attempt}/{self.max_retries} failed on all providers.",
            Priority.HIGH,
        )
        return False
