"""Pydantic models for the perennial.yaml project configuration."""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path

from croniter import croniter
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from perennial.models.deployment import DeploymentConfig

INTERVAL_PATTERN = re.compile(r"^(\d+(\.\d+)?|(\d+[smhd])+)$")
CRON_FIELDS = 5


def is_cron_expression(text: str) -> bool:
    """Whether ``text`` is a valid five-field cron expression."""
    return len(text.split()) == CRON_FIELDS and croniter.is_valid(text)


class ProviderType(str, Enum):
    """Supported compute backends."""

    MARKETPLACE = "marketplace"
    DIRECT_HOST = "direct-host"


class MarketplaceProviderConfig(BaseModel):
    """Auction marketplace backend configuration.

    Attributes:
        rest_endpoint: Chain REST (LCD) endpoint used for queries
        signer_url: Endpoint of the external signing service
        chain_id: Chain identifier
        owner_address: Deployment owner address (defaults to the signer's)
        denom: Smallest-unit denomination
        display_denom: Display denomination
        deposit_amount: Escrow deposit in smallest units
        pricing_amount: Maximum price per block in smallest units
        bid_wait_seconds: Total time to wait for bids
        bid_poll_seconds: Interval between bid queries
        request_timeout: Timeout for every HTTP request in seconds
    """

    model_config = ConfigDict(extra="forbid")

    rest_endpoint: str = Field(
        default="https://api.akashnet.net", description="Chain REST endpoint"
    )
    signer_url: str | None = Field(
        default=None, description="External signing service endpoint"
    )
    chain_id: str = Field(default="akashnet-2", description="Chain identifier")
    owner_address: str | None = Field(default=None, description="Owner address")
    denom: str = Field(default="uakt", description="Smallest-unit denomination")
    display_denom: str = Field(default="AKT", description="Display denomination")
    deposit_amount: int = Field(default=5_000_000, gt=0)
    pricing_amount: int = Field(default=10_000, gt=0)
    bid_wait_seconds: float = Field(default=30.0, gt=0)
    bid_poll_seconds: float = Field(default=5.0, gt=0)
    request_timeout: float = Field(default=10.0, gt=0)

    @field_validator("rest_endpoint", "signer_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Normalize endpoint URLs."""
        return v.rstrip("/") if v else v

    @model_validator(mode="after")
    def validate_poll_interval(self) -> MarketplaceProviderConfig:
        """Ensure the poll interval fits inside the bid window."""
        if self.bid_poll_seconds > self.bid_wait_seconds:
            raise ValueError(
                f"bid_poll_seconds ({self.bid_poll_seconds}) must be <= "
                f"bid_wait_seconds ({self.bid_wait_seconds})"
            )
        return self


class DirectHostProviderConfig(BaseModel):
    """Operator-controlled Docker host reached over SSH."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(..., description="SSH host")
    port: int = Field(default=22, ge=1, le=65535)
    username: str = Field(..., description="SSH username")
    private_key_path: str | None = Field(default=None, description="SSH key path")
    connect_timeout: int = Field(default=10, ge=1)
    command_timeout: float = Field(default=300.0, gt=0)
    volume_name: str = Field(default="perennial-data")


class ProviderEntry(BaseModel):
    """A provider in the priority-ordered failover list."""

    model_config = ConfigDict(extra="forbid")

    type: ProviderType
    name: str | None = Field(default=None, description="Display name")
    priority: int = Field(default=100, description="Lower numbers are tried first")
    marketplace: MarketplaceProviderConfig | None = None
    direct_host: DirectHostProviderConfig | None = None

    @model_validator(mode="after")
    def validate_backend_section(self) -> ProviderEntry:
        """Ensure the backend section matching ``type`` is present."""
        if self.type == ProviderType.MARKETPLACE and self.marketplace is None:
            self.marketplace = MarketplaceProviderConfig()
        if self.type == ProviderType.DIRECT_HOST and self.direct_host is None:
            raise ValueError("direct_host section is required for type 'direct-host'")
        return self

    @property
    def display_name(self) -> str:
        """Name used in logs, notifications and metadata."""
        return self.name or self.type.value


class HeartbeatConfig(BaseModel):
    """Heartbeat intervals and thresholds."""

    model_config = ConfigDict(extra="forbid")

    health_interval: str = Field(default="2m")
    funding_interval: str = Field(default="30m")
    connectivity_interval: str = Field(default="5m")
    external_balance_interval: str = Field(default="1h")
    summary_interval: str = Field(default="24h")
    funding_threshold: float = Field(default=1.0, ge=0)
    max_health_failures: int = Field(default=3, ge=1)
    max_self_heal_retries: int = Field(default=5, ge=1)
    min_peers: int = Field(default=2, ge=0)
    external_balance_endpoint: str | None = None
    external_balance_threshold: float = Field(default=1.0, ge=0)
    summary_inference_endpoint: str | None = None

    @field_validator(
        "health_interval",
        "funding_interval",
        "connectivity_interval",
        "external_balance_interval",
        "summary_interval",
    )
    @classmethod
    def validate_interval(cls, v: str) -> str:
        """Validate intervals such as 90s or 1h30m, or cron expressions."""
        text = v.strip()
        if not (INTERVAL_PATTERN.match(text) or is_cron_expression(text)):
            raise ValueError(
                f"Invalid schedule: {v}. Use an interval (30s, 2m, 1h30m) "
                "or a cron expression (*/2 * * * *)"
            )
        return text


class NotificationConfig(BaseModel):
    """Outbound alert channel settings."""

    model_config = ConfigDict(extra="forbid")

    webhook_url: str | None = None
    timeout: float = Field(default=10.0, gt=0)


class ProjectConfig(BaseModel):
    """Top-level perennial.yaml configuration."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(default="workload", description="Deployment record name")
    workload: DeploymentConfig
    providers: list[ProviderEntry] = Field(..., min_length=1)
    heartbeat: HeartbeatConfig = Field(default_factory=HeartbeatConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    state_dir: str = Field(default=".perennial")

    @model_validator(mode="after")
    def validate_unique_names(self) -> ProjectConfig:
        """Provider display names must be unique."""
        names = [entry.display_name for entry in self.providers]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate provider names: {', '.join(duplicates)}")
        return self

    def sorted_providers(self) -> list[ProviderEntry]:
        """Return providers ordered by ascending priority (stable)."""
        return sorted(self.providers, key=lambda entry: entry.priority)

    def state_path(self, base_dir: Path) -> Path:
        """Resolve the state directory relative to the config file."""
        path = Path(self.state_dir).expanduser()
        return path if path.is_absolute() else base_dir / path
