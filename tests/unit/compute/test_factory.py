"""Unit tests for building providers and managers from configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from perennial.compute.direct_host import DirectHostProvider
from perennial.compute.factory import create_manager, create_provider, create_signer
from perennial.compute.marketplace import MarketplaceProvider, RemoteSigner
from perennial.compute.marketplace.chain import ReadOnlySigner
from perennial.config.loader import ConfigLoader
from perennial.lib.errors import ConfigError
from perennial.models.config import MarketplaceProviderConfig, ProviderEntry


@pytest.mark.unit
class TestFactory:
    """Tests for create_signer, create_provider and create_manager."""

    def test_signer_prefers_signing_service(self) -> None:
        settings = MarketplaceProviderConfig(
            signer_url="https://signer.local", owner_address="akash1owner"
        )

        assert isinstance(create_signer("akash", settings), RemoteSigner)

    def test_signer_falls_back_to_read_only(self) -> None:
        settings = MarketplaceProviderConfig(owner_address="akash1owner")

        assert isinstance(create_signer("akash", settings), ReadOnlySigner)

    def test_signer_requires_identity(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            create_signer("akash", MarketplaceProviderConfig())

        assert exc_info.value.field == "providers.akash.marketplace"

    def test_create_provider_uses_display_name(self) -> None:
        entry = ProviderEntry(
            type="direct-host",
            name="vps",
            direct_host={"host": "vps.example.com", "username": "deploy"},
        )

        provider = create_provider(entry)

        assert isinstance(provider, DirectHostProvider)
        assert provider.name == "vps"

    def test_create_manager_in_priority_order(self, config_file: Path) -> None:
        config = ConfigLoader(env={}).load_project_config(config_file)

        manager = create_manager(config)

        assert [p.name for p in manager.providers] == ["akash", "vps"]
        assert isinstance(manager.providers[0], MarketplaceProvider)

    def test_create_manager_only(self, config_file: Path) -> None:
        config = ConfigLoader(env={}).load_project_config(config_file)

        manager = create_manager(config, only="vps")

        assert [p.name for p in manager.providers] == ["vps"]

        with pytest.raises(ConfigError, match="Unknown provider 'nope'"):
            create_manager(config, only="nope")
