"""Direct-host compute provider.

Runs the workload as a Docker container on an operator-controlled server
reached over SSH. There is no auction and no token economy; this backend is
the fallback when marketplace providers are unavailable.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass

from ulid import ULID

from perennial.compute.base import ComputeProvider
from perennial.compute.direct_host import commands
from perennial.compute.direct_host.ssh import SSHRunner
from perennial.lib.errors import DeploymentError, RemoteCommandError
from perennial.lib.logging_config import get_logger
from perennial.models.config import DirectHostProviderConfig
from perennial.models.deployment import (
    Balance,
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    FundingResult,
    HealthCheckResult,
)

logger = get_logger(__name__)

CONTAINER_PREFIX = "perennial"

CONTAINER_STATUS_MAP: dict[str, DeploymentStatus] = {
    "running": DeploymentStatus.RUNNING,
    "exited": DeploymentStatus.STOPPED,
    "dead": DeploymentStatus.STOPPED,
    "created": DeploymentStatus.DEPLOYING,
    "restarting": DeploymentStatus.DEPLOYING,
}


@dataclass(frozen=True)
class ContainerRef:
    """Container handle stored in ``Deployment.metadata``."""

    container_name: str
    host: str

    def to_metadata(self) -> dict[str, str]:
        return {"container_name": self.container_name, "host": self.host}

    @classmethod
    def from_deployment(cls, deployment: Deployment) -> ContainerRef:
        """Read the handle, raising MissingMetadataError on absent keys."""
        return cls(
            container_name=deployment.require("container_name"),
            host=deployment.require("host"),
        )


@dataclass(frozen=True)
class ContainerStats:
    """Resource usage reported by ``docker stats``."""

    cpu_percent: float
    memory_usage: str
    memory_limit: str
    memory_percent: float


def new_container_name() -> str:
    return f"{CONTAINER_PREFIX}-{str(ULID()).lower()}"


def parse_stats(output: str) -> ContainerStats | None:
    """Parse one ``CPU%|usage / limit|MEM%`` line; None when malformed."""
    line = output.strip().strip("'")
    parts = line.split("|")
    if len(parts) != 3 or not all(parts):
        return None
    cpu, mem_usage, mem_percent = parts
    usage, _, limit = mem_usage.partition("/")
    try:
        return ContainerStats(
            cpu_percent=float(cpu.strip().rstrip("%")),
            memory_usage=usage.strip() or "0",
            memory_limit=limit.strip() or "0",
            memory_percent=float(mem_percent.strip().rstrip("%")),
        )
    except ValueError:
        return None


class DirectHostProvider(ComputeProvider):
    """Deploy containers on a user-controlled host over SSH."""

    def __init__(
        self,
        config: DirectHostProviderConfig,
        *,
        name: str = "direct-host",
        runner: SSHRunner | None = None,
    ) -> None:
        """Initialize the direct-host provider.

        Args:
            config: SSH host configuration
            name: Provider name recorded on deployments
            runner: Command runner (built from ``config`` when omitted)
        """
        super().__init__(name)
        self._config = config
        self._runner = runner or SSHRunner.from_config(config)

    async def deploy(self, config: DeploymentConfig) -> Deployment:
        """Pull the image and start a uniquely named container.

        Raises:
            RemoteCommandError: If the pull or run command fails
        """
        container_name = new_container_name()
        command = commands.build_deploy_command(
            config, container_name, self._config.volume_name
        )
        logger.info(f"Starting {container_name} ({config.image}) on {self._config.host}")
        await self._runner.run(command, operation="deploy")

        ref = ContainerRef(container_name=container_name, host=self._config.host)
        return Deployment(
            id=container_name,
            provider=self.name,
            status=DeploymentStatus.RUNNING,
            config=config,
            metadata=ref.to_metadata(),
        )

    async def _inspect(self, container_name: str) -> DeploymentStatus:
        try:
            output = await self._runner.run(
                commands.build_inspect_command(container_name), operation="status"
            )
        except (RemoteCommandError, OSError) as e:
            logger.debug(f"Inspecting {container_name} failed: {e}")
            return DeploymentStatus.UNKNOWN
        state = output.strip().strip("'")
        return CONTAINER_STATUS_MAP.get(state, DeploymentStatus.UNKNOWN)

    async def status(self, deployment: Deployment) -> DeploymentStatus:
        ref = ContainerRef.from_deployment(deployment)
        return await self._inspect(ref.container_name)

    async def health_check(self, deployment: Deployment) -> HealthCheckResult:
        ref = ContainerRef.from_deployment(deployment)
        start = time.monotonic()
        state = await self._inspect(ref.container_name)
        healthy = state == DeploymentStatus.RUNNING
        return HealthCheckResult(
            healthy=healthy,
            latency_ms=(time.monotonic() - start) * 1000,
            message="Container running" if healthy else f"Container status: {state.value}",
        )

    async def destroy(self, deployment: Deployment) -> None:
        """Stop and remove the container; absent containers are ignored."""
        ref = ContainerRef.from_deployment(deployment)
        try:
            await self._runner.run(
                commands.build_destroy_command(ref.container_name),
                operation="destroy",
            )
        except RemoteCommandError as e:
            if commands.is_missing_container(e.stderr):
                logger.info(f"Container {ref.container_name} is already gone")
                return
            raise
        logger.info(f"Removed container {ref.container_name} from {ref.host}")

    async def fund(self, amount: float) -> FundingResult:
        return FundingResult(
            success=True, message="Direct host provider does not require funding."
        )

    async def get_balance(self) -> Balance:
        return Balance(amount=math.inf, denom="N/A")

    async def get_logs(self, deployment: Deployment, lines: int = 100) -> list[str]:
        ref = ContainerRef.from_deployment(deployment)
        try:
            output = await self._runner.run(
                commands.build_logs_command(ref.container_name, lines),
                operation="logs",
            )
        except RemoteCommandError as e:
            raise DeploymentError(
                operation="logs", message=f"Failed to fetch logs: {e.message}"
            ) from e
        return [line for line in output.splitlines() if line]

    async def container_stats(self, deployment: Deployment) -> ContainerStats | None:
        """Return CPU and memory usage, or None if it cannot be read."""
        ref = ContainerRef.from_deployment(deployment)
        try:
            output = await self._runner.run(
                commands.build_stats_command(ref.container_name), operation="stats"
            )
        except (RemoteCommandError, OSError) as e:
            logger.debug(f"Reading stats for {ref.container_name} failed: {e}")
            return None
        return parse_stats(output)
