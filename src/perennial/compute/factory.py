"""Build compute providers and managers from configuration."""

from __future__ import annotations

from perennial.compute.base import ComputeProvider
from perennial.compute.direct_host import DirectHostProvider
from perennial.compute.manager import ProviderManager
from perennial.compute.marketplace import MarketplaceProvider, RemoteSigner
from perennial.compute.marketplace.chain import ReadOnlySigner, TransactionSigner
from perennial.lib.errors import ConfigError
from perennial.models.config import (
    MarketplaceProviderConfig,
    ProjectConfig,
    ProviderEntry,
    ProviderType,
)


def create_signer(
    name: str, settings: MarketplaceProviderConfig
) -> TransactionSigner:
    """Create the transaction signer for a marketplace provider.

    Raises:
        ConfigError: If neither a signing service nor an owner address is set
    """
    if settings.signer_url:
        return RemoteSigner(settings.signer_url, settings.chain_id)
    if settings.owner_address:
        return ReadOnlySigner(settings.owner_address)
    raise ConfigError(
        f"providers.{name}.marketplace",
        "signer_url or owner_address is required",
    )


def create_provider(
    entry: ProviderEntry, signer: TransactionSigner | None = None
) -> ComputeProvider:
    """Instantiate the backend described by a provider entry.

    Args:
        entry: Provider configuration entry
        signer: Signer override for marketplace entries

    Returns:
        Configured ComputeProvider
    """
    name = entry.display_name
    if entry.type == ProviderType.MARKETPLACE and entry.marketplace is not None:
        return MarketplaceProvider(
            entry.marketplace,
            signer or create_signer(name, entry.marketplace),
            name=name,
        )
    if entry.type == ProviderType.DIRECT_HOST and entry.direct_host is not None:
        return DirectHostProvider(entry.direct_host, name=name)
    raise ConfigError(f"providers.{name}", f"No settings for type '{entry.type.value}'")


def create_manager(
    config: ProjectConfig, only: str | None = None
) -> ProviderManager:
    """Build a ProviderManager for every configured provider.

    Args:
        config: Project configuration
        only: Restrict the manager to the provider with this name

    Raises:
        ConfigError: If ``only`` names no configured provider
    """
    entries = config.sorted_providers()
    if only is not None:
        entries = [entry for entry in entries if entry.display_name == only]
        if not entries:
            names = ", ".join(e.display_name for e in config.providers)
            raise ConfigError(
                "providers", f"Unknown provider '{only}'. Configured: {names}"
            )
    return ProviderManager(
        (entry.priority, create_provider(entry)) for entry in entries
    )
