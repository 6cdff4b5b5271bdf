"""Models for the on-disk record of each project's active deployment."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from perennial.models.deployment import Deployment


class DeploymentRecord(BaseModel):
    """The deployment a project currently owns, plus bookkeeping.

    Attributes:
        deployment: Handle returned by the owning provider
        config_hash: Hash of the workload request that produced it
        created_at: When the project was first deployed
        updated_at: When this record last changed
    """

    model_config = ConfigDict(extra="forbid")

    deployment: Deployment
    config_hash: str = Field(..., description="sha256 of the canonical config")
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def provider(self) -> str:
        return self.deployment.provider


class DeploymentState(BaseModel):
    """Contents of ``deployments.json``."""

    model_config = ConfigDict(extra="forbid")

    version: str = "1.0"
    deployments: dict[str, DeploymentRecord] = Field(default_factory=dict)
