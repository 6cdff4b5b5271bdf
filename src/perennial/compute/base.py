"""Base interface for compute providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from perennial.models.deployment import (
    Balance,
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    FundingResult,
    HealthCheckResult,
)


class ComputeProvider(ABC):
    """Abstract base class for compute backends.

    The ProviderManager talks exclusively through this interface so that
    failover, monitoring, and deployment logic stay provider-agnostic.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def deploy(self, config: DeploymentConfig) -> Deployment:
        """Launch a workload and return its deployment handle.

        Args:
            config: Workload description.

        Returns:
            Deployment with status ``running`` on success. A recoverable
            failure such as an auction without bids is reported as a
            deployment with status ``failed`` and an ``error`` metadata entry.

        Raises:
            DeploymentError: If a network call or transaction fails.
        """

    @abstractmethod
    async def status(self, deployment: Deployment) -> DeploymentStatus:
        """Return the current status of a deployment.

        Unreachable backends are reported as ``unknown`` rather than raised.
        """

    @abstractmethod
    async def health_check(self, deployment: Deployment) -> HealthCheckResult:
        """Probe the deployment. Never raises for network failures."""

    @abstractmethod
    async def destroy(self, deployment: Deployment) -> None:
        """Tear down the deployment and release its resources.

        Destroying a deployment that is already gone must not raise.
        """

    @abstractmethod
    async def fund(self, amount: float) -> FundingResult:
        """Fund the provider account."""

    @abstractmethod
    async def get_balance(self) -> Balance:
        """Return the balance available for compute spending."""

    @property
    def supports_logs(self) -> bool:
        """Whether ``get_logs`` is implemented by this provider."""
        return type(self).get_logs is not ComputeProvider.get_logs

    async def get_logs(self, deployment: Deployment, lines: int = 100) -> list[str]:
        """Return recent log lines for a deployment.

        Raises:
            NotImplementedError: When log retrieval is not supported.
        """
        raise NotImplementedError(f"Log retrieval is not supported by {self.name}.")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
