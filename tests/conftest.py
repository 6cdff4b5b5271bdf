"""Pytest configuration and shared fixtures for Perennial tests."""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from pathlib import Path

import pytest

from perennial.collaborators import Priority
from perennial.compute.base import ComputeProvider
from perennial.lib.errors import DeploymentError
from perennial.models.deployment import (
    Balance,
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    FundingResult,
    HealthCheckResult,
)


class FakeProvider(ComputeProvider):
    """In-memory compute provider that records every call.

    Attributes:
        fail: When True every deploy raises DeploymentError
        failed_status: When True deploy returns a deployment with status failed
        healthy: Result reported by health_check
        balance: Value returned by get_balance
    """

    def __init__(
        self,
        name: str,
        *,
        fail: bool = False,
        failed_status: bool = False,
        healthy: bool = True,
        balance: Balance | None = None,
    ) -> None:
        super().__init__(name)
        self.fail = fail
        self.failed_status = failed_status
        self.healthy = healthy
        self.balance = balance or Balance(amount=10.0, denom="AKT")
        self.deploy_calls = 0
        self.destroyed: list[str] = []

    async def deploy(self, config: DeploymentConfig) -> Deployment:
        self.deploy_calls += 1
        if self.fail:
            raise DeploymentError(operation="deploy", message=f"{self.name} is down")
        status = DeploymentStatus.FAILED if self.failed_status else DeploymentStatus.RUNNING
        metadata = {"error": f"{self.name} found no bids"} if self.failed_status else {}
        return Deployment(
            id=f"{self.name}-{self.deploy_calls}",
            provider=self.name,
            status=status,
            config=config,
            metadata=metadata,
        )

    async def status(self, deployment: Deployment) -> DeploymentStatus:
        return DeploymentStatus.RUNNING if self.healthy else DeploymentStatus.FAILED

    async def health_check(self, deployment: Deployment) -> HealthCheckResult:
        return HealthCheckResult(
            healthy=self.healthy,
            message="Container running" if self.healthy else "No available replicas",
        )

    async def destroy(self, deployment: Deployment) -> None:
        self.destroyed.append(deployment.id)

    async def fund(self, amount: float) -> FundingResult:
        return FundingResult(success=True, message=f"Fund {self.name}")

    async def get_balance(self) -> Balance:
        return self.balance


class RecordingChannel:
    """Notification channel that keeps every delivered message."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, Priority]] = []

    async def send(self, message: str, priority: Priority) -> None:
        self.sent.append((message, priority))

    def messages(self, priority: Priority | None = None) -> list[str]:
        return [m for m, p in self.sent if priority is None or p == priority]


@pytest.fixture(autouse=True)
def reset_perennial_logging() -> Generator[None]:
    """Undo handler and propagation changes made by setup_logging."""
    logger = logging.getLogger("perennial")
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def clean_perennial_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep PERENNIAL_* variables of the calling shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("PERENNIAL_"):
            monkeypatch.delenv(name)


@pytest.fixture
def workload() -> DeploymentConfig:
    """A small workload with env vars, a port and a persistent volume."""
    return DeploymentConfig(
        image="ghcr.io/example/agent:1.2.0",
        cpu=0.5,
        memory="512Mi",
        storage="1Gi",
        env={"RELAY_URL": "wss://relay.example", "LOG_LEVEL": "info"},
        ports=[8080],
        persistent_storage={"size": "5Gi", "mount_path": "/data"},
    )


@pytest.fixture
def make_provider() -> type[FakeProvider]:
    """Factory for in-memory providers."""
    return FakeProvider


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A perennial.yaml with one marketplace and one direct-host provider."""
    path = tmp_path / "perennial.yaml"
    path.write_text(
        """
name: agent
workload:
  image: ghcr.io/example/agent:1.2.0
  cpu: 0.5
  memory: 512Mi
  env:
    RELAY_URL: wss://relay.example
  persistent_storage:
    size: 5Gi
providers:
  - type: marketplace
    name: akash
    priority: 1
    marketplace:
      rest_endpoint: https://api.example.net
      owner_address: akash1owner
  - type: direct-host
    name: vps
    priority: 2
    direct_host:
      host: vps.example.com
      username: deploy
""",
        encoding="utf-8",
    )
    return path
