"""Pydantic models for workloads and their deployments.

This module defines the provider-agnostic deployment request, the deployment
handle returned by compute providers, and the small value objects
(balances, health results, bids) exchanged across the provider boundary.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from perennial.lib.errors import MissingMetadataError

# Kubernetes-style quantity, e.g. 512Mi or 1Gi
QUANTITY_PATTERN = re.compile(r"^\d+(Ki|Mi|Gi|Ti)$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeploymentStatus(str, Enum):
    """Lifecycle status of a deployment."""

    PENDING = "pending"
    DEPLOYING = "deploying"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"
    UNKNOWN = "unknown"


class PersistentVolume(BaseModel):
    """Persistent volume attached to the workload.

    Attributes:
        size: Volume size in quantity notation (e.g. 5Gi)
        mount_path: Absolute path inside the container
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    size: str = Field(..., description="Volume size (e.g., 5Gi)")
    mount_path: str = Field(default="/data", description="Mount path in container")

    @field_validator("size")
    @classmethod
    def validate_size(cls, v: str) -> str:
        """Validate volume size notation."""
        if not QUANTITY_PATTERN.match(v):
            raise ValueError(f"Invalid volume size: {v}. Expected e.g. 512Mi or 5Gi")
        return v

    @field_validator("mount_path")
    @classmethod
    def validate_mount_path(cls, v: str) -> str:
        """Validate that the mount path is absolute."""
        if not v.startswith("/"):
            raise ValueError(f"mount_path must be absolute, got: {v}")
        return v


class DeploymentConfig(BaseModel):
    """Immutable request describing the workload to run.

    Attributes:
        image: Container image reference
        cpu: Fractional vCPU units
        memory: Memory limit (e.g. 512Mi)
        storage: Ephemeral storage size (e.g. 1Gi)
        env: Environment variables injected into the container
        ports: Ports to expose (empty means outbound-only)
        persistent_storage: Optional persistent volume
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    image: str = Field(..., min_length=1, description="Container image reference")
    cpu: float = Field(default=0.5, gt=0, description="Fractional vCPU units")
    memory: str = Field(default="512Mi", description="Memory limit")
    storage: str = Field(default="1Gi", description="Ephemeral storage size")
    env: dict[str, str] = Field(
        default_factory=dict, description="Environment variables"
    )
    ports: list[int] = Field(default_factory=list, description="Exposed ports")
    persistent_storage: PersistentVolume | None = Field(
        default=None, description="Optional persistent volume"
    )

    @field_validator("memory", "storage")
    @classmethod
    def validate_quantity(cls, v: str) -> str:
        """Validate memory and storage quantity notation."""
        if not QUANTITY_PATTERN.match(v):
            raise ValueError(f"Invalid quantity: {v}. Expected e.g. 512Mi or 1Gi")
        return v

    @field_validator("ports")
    @classmethod
    def validate_ports(cls, v: list[int]) -> list[int]:
        """Validate port range."""
        for port in v:
            if not 1 <= port <= 65535:
                raise ValueError(f"Port out of range: {port}")
        return v


class Deployment(BaseModel):
    """A workload instance on a specific compute provider.

    The ``metadata`` map is the only place backend-specific state lives.
    Providers read it through ``require`` so that a missing key is a hard
    failure instead of a silent default.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., description="Opaque deployment identifier")
    provider: str = Field(..., description="Name of the owning provider")
    status: DeploymentStatus = Field(..., description="Current status")
    created_at: datetime = Field(default_factory=_utcnow)
    config: DeploymentConfig = Field(..., description="Originating request")
    metadata: dict[str, str] = Field(default_factory=dict)

    def require(self, key: str) -> str:
        """Return a metadata value, raising when it is missing or empty."""
        value = self.metadata.get(key)
        if not value:
            raise MissingMetadataError(self.provider, key)
        return value

    @property
    def error(self) -> str | None:
        """Error message recorded by a failed deploy, if any."""
        return self.metadata.get("error")

    @property
    def failed(self) -> bool:
        """Whether the deploy attempt reported failure."""
        return self.status == DeploymentStatus.FAILED


class Balance(BaseModel):
    """Snapshot of an account balance."""

    amount: float = Field(..., description="Amount in display units")
    denom: str = Field(..., description="Denomination")
    usd_estimate: float | None = Field(default=None, description="Fiat estimate")


class FundingResult(BaseModel):
    """Outcome of a funding request."""

    success: bool
    message: str
    tx_hash: str | None = None


class HealthCheckResult(BaseModel):
    """Outcome of a single health probe."""

    healthy: bool
    latency_ms: float | None = None
    message: str | None = None
    checked_at: datetime = Field(default_factory=_utcnow)


class Bid(BaseModel):
    """Open bid on a marketplace deployment order.

    Attributes:
        provider: Bidder address
        gseq: Group sequence number
        oseq: Order sequence number
        price: Decimal price in smallest units per block (lower is cheaper)
        provider_uri: Resolved service endpoint of the bidder
    """

    provider: str
    gseq: str = "1"
    oseq: str = "1"
    price: Decimal
    provider_uri: str | None = None
