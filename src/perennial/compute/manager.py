"""Multi-provider orchestration with priority ordering and failover."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from perennial.compute.base import ComputeProvider
from perennial.lib.errors import DeploymentError, ProviderExhaustedError
from perennial.lib.logging_config import get_logger
from perennial.models.deployment import (
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    HealthCheckResult,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class FailoverEvent:
    """Emitted when the active provider changes after a failure.

    Attributes:
        previous: Name of the provider that was active before
        current: Name of the provider now hosting the workload
        deployment: The new active deployment
    """

    previous: str
    current: str
    deployment: Deployment


FailoverListener = Callable[[FailoverEvent], Awaitable[None] | None]


class ProviderManager:
    """Holds compute providers in priority order and tracks the active one.

    ``deploy`` always starts from the highest-priority provider, while
    ``failover`` starts from the provider after the active one. The active
    index and deployment are only changed by ``deploy``, ``deploy_on``,
    ``failover`` and ``adopt``; callers must not run these concurrently on
    the same manager.
    """

    def __init__(self, providers: Iterable[tuple[int, ComputeProvider]]) -> None:
        """Initialize the manager.

        Args:
            providers: ``(priority, provider)`` pairs. Lower priority numbers
                are tried first; equal priorities keep their given order.

        Raises:
            ValueError: If no providers are given
        """
        ordered = sorted(providers, key=lambda pair: pair[0])
        if not ordered:
            raise ValueError("ProviderManager requires at least one provider")
        self._providers: list[ComputeProvider] = [p for _, p in ordered]
        self._active_index = 0
        self._deployment: Deployment | None = None
        self._last_config: DeploymentConfig | None = None
        self._listeners: list[FailoverListener] = []

    @property
    def providers(self) -> list[ComputeProvider]:
        return list(self._providers)

    @property
    def active_index(self) -> int:
        return self._active_index

    @property
    def current_provider(self) -> ComputeProvider:
        return self._providers[self._active_index]

    @property
    def deployment(self) -> Deployment | None:
        return self._deployment

    @property
    def last_config(self) -> DeploymentConfig | None:
        """Config of the most recent deploy request or adopted deployment."""
        return self._last_config

    def provider_index(self, name: str) -> int:
        """Return the position of a provider by name.

        Raises:
            KeyError: If no provider has that name
        """
        for index, provider in enumerate(self._providers):
            if provider.name == name:
                return index
        raise KeyError(name)

    def add_failover_listener(self, listener: FailoverListener) -> None:
        """Register a callback (sync or async) for failover events."""
        self._listeners.append(listener)

    def remove_failover_listener(self, listener: FailoverListener) -> None:
        self._listeners.remove(listener)

    async def _emit_failover(self, event: FailoverEvent) -> None:
        logger.info(f"Failover: {event.previous} -> {event.current}")
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Failover listener raised")

    async def _attempt(
        self, provider: ComputeProvider, config: DeploymentConfig
    ) -> Deployment:
        """Deploy on one provider, treating a failed status as an error."""
        deployment = await provider.deploy(config)
        if deployment.failed:
            raise DeploymentError(
                operation="deploy",
                message=deployment.error or "Deployment returned failed status",
            )
        return deployment

    def _activate(self, index: int, deployment: Deployment) -> None:
        self._active_index = index
        self._deployment = deployment

    async def deploy(self, config: DeploymentConfig) -> Deployment:
        """Deploy on the first provider, in priority order, that succeeds.

        Raises:
            ProviderExhaustedError: If every provider failed
        """
        self._last_config = config
        last_error: str | None = None

        for index, provider in enumerate(self._providers):
            try:
                deployment = await self._attempt(provider, config)
            except Exception as e:
                last_error = str(e)
                logger.warning(f"Deploy on {provider.name} failed: {e}")
                continue

            self._activate(index, deployment)
            logger.info(f"Deployed {deployment.id} on {provider.name}")
            return deployment

        raise ProviderExhaustedError("deploy", last_error)

    async def deploy_on(self, index: int, config: DeploymentConfig) -> Deployment:
        """Deploy on one specific provider and make it active.

        A deployment that was active before is destroyed (best effort) once
        the new one is up. Moving to a different provider emits a failover
        event.

        Raises:
            DeploymentError: If the provider fails or returns a failed status
        """
        provider = self._providers[index]
        self._last_config = config
        deployment = await self._attempt(provider, config)

        previous_index = self._active_index
        previous_deployment = self._deployment
        self._activate(index, deployment)

        if previous_deployment is not None and previous_deployment.id != deployment.id:
            await self._destroy_quietly(
                self._providers[previous_index], previous_deployment
            )
        if previous_index != index:
            await self._emit_failover(
                FailoverEvent(
                    previous=self._providers[previous_index].name,
                    current=provider.name,
                    deployment=deployment,
                )
            )
        return deployment

    async def _destroy_quietly(
        self, provider: ComputeProvider, deployment: Deployment
    ) -> None:
        try:
            await provider.destroy(deployment)
        except Exception as e:
            logger.warning(
                f"Destroying {deployment.id} on {provider.name} failed: {e}"
            )

    async def status(self) -> DeploymentStatus:
        if self._deployment is None:
            return DeploymentStatus.UNKNOWN
        return await self.current_provider.status(self._deployment)

    async def health_check(self) -> HealthCheckResult:
        if self._deployment is None:
            return HealthCheckResult(healthy=False, message="No active deployment")
        return await self.current_provider.health_check(self._deployment)

    async def failover(self) -> Deployment:
        """Move the workload off the active provider.

        Destroys the current deployment (best effort), then tries every
        provider starting after the active one, wrapping around so that the
        active provider is tried last. Landing back on the active provider
        emits no failover event.

        Raises:
            DeploymentError: If no deployment config is known
            ProviderExhaustedError: If every provider failed
        """
        config = self._last_config
        if config is None:
            raise DeploymentError(
                operation="failover",
                message="Cannot failover: no deployment config available",
            )

        previous = self.current_provider
        if self._deployment is not None:
            await self._destroy_quietly(previous, self._deployment)
            self._deployment = None

        count = len(self._providers)
        last_error: str | None = None
        for offset in range(1, count + 1):
            index = (self._active_index + offset) % count
            provider = self._providers[index]
            try:
                deployment = await self._attempt(provider, config)
            except Exception as e:
                last_error = str(e)
                logger.warning(f"Failover to {provider.name} failed: {e}")
                continue

            moved = index != self._active_index
            self._activate(index, deployment)
            if moved:
                await self._emit_failover(
                    FailoverEvent(
                        previous=previous.name,
                        current=provider.name,
                        deployment=deployment,
                    )
                )
            return deployment

        raise ProviderExhaustedError("failover", last_error)

    async def destroy(self) -> None:
        """Destroy the active deployment on its provider."""
        if self._deployment is None:
            return
        await self.current_provider.destroy(self._deployment)
        logger.info(f"Destroyed {self._deployment.id} on {self.current_provider.name}")
        self._deployment = None

    def adopt(self, deployment: Deployment) -> None:
        """Restore a previously persisted deployment as the active one.

        Raises:
            DeploymentError: If the owning provider is not configured
        """
        try:
            index = self.provider_index(deployment.provider)
        except KeyError as e:
            raise DeploymentError(
                operation="adopt",
                message=f"Provider '{deployment.provider}' is not configured",
            ) from e
        self._activate(index, deployment)
        self._last_config = deployment.config
