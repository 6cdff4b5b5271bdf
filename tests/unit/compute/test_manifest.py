"""Unit tests for marketplace manifest rendering and message builders."""

from __future__ import annotations

import pytest
import yaml

from perennial.compute.marketplace.manifest import (
    build_manifest,
    manifest_version,
    render_manifest,
)
from perennial.compute.marketplace.messages import (
    CLOSE_DEPLOYMENT,
    CREATE_DEPLOYMENT,
    CREATE_LEASE,
    close_deployment_msg,
    create_deployment_msg,
    create_lease_msg,
    default_fee,
)
from perennial.models.deployment import DeploymentConfig


@pytest.mark.unit
class TestManifest:
    """Tests for manifest structure and hashing."""

    def test_render_starts_with_document_marker(self, workload: DeploymentConfig) -> None:
        assert render_manifest(workload).startswith("---\n")

    def test_service_section(self, workload: DeploymentConfig) -> None:
        """Env vars are sorted and ports exposed globally."""
        document = yaml.safe_load(render_manifest(workload, pricing_amount=2500))
        service = document["services"]["agent"]

        assert document["version"] == "2.0"
        assert service["image"] == "ghcr.io/example/agent:1.2.0"
        assert service["env"] == ["LOG_LEVEL=info", "RELAY_URL=wss://relay.example"]
        assert service["expose"] == [{"port": 8080, "as": 8080, "to": [{"global": True}]}]
        assert service["params"]["storage"]["data"] == {
            "mount": "/data",
            "readOnly": False,
        }

    def test_compute_profile_and_pricing(self, workload: DeploymentConfig) -> None:
        document = build_manifest(workload, pricing_amount=2500, denom="uakt")
        resources = document["profiles"]["compute"]["agent"]["resources"]
        pricing = document["profiles"]["placement"]["dcloud"]["pricing"]["agent"]

        assert resources["cpu"] == {"units": 0.5}
        assert resources["memory"] == {"size": "512Mi"}
        assert resources["storage"][0] == {"size": "1Gi"}
        assert resources["storage"][1]["attributes"] == {
            "persistent": True,
            "class": "beta3",
        }
        assert pricing == {"denom": "uakt", "amount": 2500}
        assert document["deployment"]["agent"]["dcloud"]["count"] == 1

    def test_whole_cpu_rendered_as_integer(self) -> None:
        document = build_manifest(DeploymentConfig(image="nginx", cpu=2), pricing_amount=1)

        assert document["profiles"]["compute"]["agent"]["resources"]["cpu"] == {
            "units": 2
        }

    def test_no_ports_no_persistence(self) -> None:
        document = build_manifest(DeploymentConfig(image="nginx"), pricing_amount=1)
        service = document["services"]["agent"]

        assert service["expose"] == []
        assert "env" not in service
        assert "params" not in service

    def test_version_is_stable_for_equal_configs(self) -> None:
        """Env insertion order does not change the manifest hash."""
        first = DeploymentConfig(image="nginx", env={"A": "1", "B": "2"})
        second = DeploymentConfig(image="nginx", env={"B": "2", "A": "1"})

        assert manifest_version(render_manifest(first)) == manifest_version(
            render_manifest(second)
        )

    def test_version_changes_with_config(self) -> None:
        first = render_manifest(DeploymentConfig(image="nginx:1"))
        second = render_manifest(DeploymentConfig(image="nginx:2"))

        assert manifest_version(first) != manifest_version(second)
        assert len(manifest_version(first)) == 64


@pytest.mark.unit
class TestMessages:
    """Tests for transaction message builders."""

    def test_create_deployment(self) -> None:
        msg = create_deployment_msg("akash1owner", "100", "abc", 5_000_000, "uakt")

        assert msg["type_url"] == CREATE_DEPLOYMENT
        assert msg["value"]["id"] == {"owner": "akash1owner", "dseq": "100"}
        assert msg["value"]["deposit"] == {"denom": "uakt", "amount": "5000000"}
        assert msg["value"]["depositor"] == "akash1owner"

    def test_create_lease_carries_bid_id(self) -> None:
        msg = create_lease_msg("akash1owner", "100", "akash1prov", "1", "2")

        assert msg["type_url"] == CREATE_LEASE
        assert msg["value"]["bid_id"]["provider"] == "akash1prov"
        assert msg["value"]["bid_id"]["oseq"] == "2"

    def test_close_deployment(self) -> None:
        msg = close_deployment_msg("akash1owner", "100")

        assert msg["type_url"] == CLOSE_DEPLOYMENT

    def test_default_fee(self) -> None:
        assert default_fee("uakt") == {
            "amount": [{"denom": "uakt", "amount": "5000"}],
            "gas": "300000",
        }
