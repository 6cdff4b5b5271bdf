"""Unit tests for deployment and project configuration models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from perennial.lib.errors import MissingMetadataError
from perennial.models.config import (
    DirectHostProviderConfig,
    MarketplaceProviderConfig,
    ProjectConfig,
    ProviderEntry,
    ProviderType,
)
from perennial.models.deployment import (
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    PersistentVolume,
)


@pytest.mark.unit
class TestDeploymentConfig:
    """Tests for the workload request model."""

    def test_defaults(self) -> None:
        """Only the image is required."""
        config = DeploymentConfig(image="nginx:latest")

        assert config.cpu == 0.5
        assert config.memory == "512Mi"
        assert config.storage == "1Gi"
        assert config.env == {}
        assert config.ports == []
        assert config.persistent_storage is None

    @pytest.mark.parametrize("memory", ["512", "512MB", "1.5Gi", ""])
    def test_invalid_memory_rejected(self, memory: str) -> None:
        """Memory must use Ki/Mi/Gi/Ti notation."""
        with pytest.raises(ValidationError, match="Invalid quantity"):
            DeploymentConfig(image="nginx", memory=memory)

    def test_port_out_of_range_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Port out of range"):
            DeploymentConfig(image="nginx", ports=[70000])

    def test_config_is_frozen(self) -> None:
        """Deployment requests are immutable once created."""
        config = DeploymentConfig(image="nginx")

        with pytest.raises(ValidationError):
            config.image = "redis"  # type: ignore[misc]

    def test_relative_mount_path_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must be absolute"):
            PersistentVolume(size="5Gi", mount_path="data")


@pytest.mark.unit
class TestDeployment:
    """Tests for the deployment handle."""

    def test_require_returns_value(self, workload: DeploymentConfig) -> None:
        deployment = Deployment(
            id="d-1",
            provider="akash",
            status=DeploymentStatus.RUNNING,
            config=workload,
            metadata={"dseq": "42"},
        )

        assert deployment.require("dseq") == "42"

    def test_require_missing_key_raises(self, workload: DeploymentConfig) -> None:
        """A missing backend key is an error, not a silent default."""
        deployment = Deployment(
            id="d-1",
            provider="akash",
            status=DeploymentStatus.RUNNING,
            config=workload,
            metadata={"dseq": ""},
        )

        with pytest.raises(MissingMetadataError) as exc_info:
            deployment.require("dseq")

        assert exc_info.value.key == "dseq"
        assert "akash" in str(exc_info.value)

    def test_failed_and_error(self, workload: DeploymentConfig) -> None:
        deployment = Deployment(
            id="d-1",
            provider="akash",
            status=DeploymentStatus.FAILED,
            config=workload,
            metadata={"error": "No bids received within 30s"},
        )

        assert deployment.failed is True
        assert deployment.error == "No bids received within 30s"


@pytest.mark.unit
class TestProjectConfig:
    """Tests for the top-level project configuration."""

    def test_marketplace_section_defaults(self) -> None:
        """A marketplace entry without settings gets the defaults."""
        entry = ProviderEntry(type=ProviderType.MARKETPLACE)

        assert entry.marketplace == MarketplaceProviderConfig()
        assert entry.display_name == "marketplace"

    def test_direct_host_requires_section(self) -> None:
        with pytest.raises(ValidationError, match="direct_host section is required"):
            ProviderEntry(type=ProviderType.DIRECT_HOST)

    def test_poll_interval_must_fit_wait(self) -> None:
        with pytest.raises(ValidationError, match="bid_poll_seconds"):
            MarketplaceProviderConfig(bid_wait_seconds=5, bid_poll_seconds=10)

    def test_endpoint_trailing_slash_stripped(self) -> None:
        config = MarketplaceProviderConfig(rest_endpoint="https://api.example.net/")

        assert config.rest_endpoint == "https://api.example.net"

    def test_sorted_providers_is_stable(self) -> None:
        """Equal priorities keep their configured order."""
        host = DirectHostProviderConfig(host="h", username="u")
        config = ProjectConfig(
            workload=DeploymentConfig(image="nginx"),
            providers=[
                ProviderEntry(type="direct-host", name="b", priority=2, direct_host=host),
                ProviderEntry(type="direct-host", name="a", priority=1, direct_host=host),
                ProviderEntry(type="direct-host", name="c", priority=2, direct_host=host),
            ],
        )

        assert [e.display_name for e in config.sorted_providers()] == ["a", "b", "c"]

    def test_duplicate_provider_names_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Duplicate provider names: akash"):
            ProjectConfig(
                workload=DeploymentConfig(image="nginx"),
                providers=[
                    ProviderEntry(type="marketplace", name="akash"),
                    ProviderEntry(type="marketplace", name="akash", priority=5),
                ],
            )

    @pytest.mark.parametrize("schedule", ["5 minutes", "* * *", "61 * * * *"])
    def test_invalid_heartbeat_schedule_rejected(self, schedule: str) -> None:
        with pytest.raises(ValidationError, match="Invalid schedule"):
            ProjectConfig(
                workload=DeploymentConfig(image="nginx"),
                providers=[ProviderEntry(type="marketplace")],
                heartbeat={"health_interval": schedule},
            )

    def test_cron_heartbeat_schedule_accepted(self) -> None:
        config = ProjectConfig(
            workload=DeploymentConfig(image="nginx"),
            providers=[ProviderEntry(type="marketplace")],
            heartbeat={"health_interval": " */2 * * * * ", "summary_interval": "1h30m"},
        )

        assert config.heartbeat.health_interval == "*/2 * * * *"
        assert config.heartbeat.summary_interval == "1h30m"

    def test_state_path_relative_to_base(self, tmp_path) -> None:
        config = ProjectConfig(
            workload=DeploymentConfig(image="nginx"),
            providers=[ProviderEntry(type="marketplace")],
        )

        assert config.state_path(tmp_path) == tmp_path / ".perennial"
