"""Typed view over the metadata a marketplace deployment carries."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from perennial.models.deployment import Deployment


class MarketplaceLeaseRef(BaseModel):
    """Lease handle stored in ``Deployment.metadata`` by the marketplace backend.

    Attributes:
        owner: Deployment owner address
        dseq: Deployment sequence number
        gseq: Group sequence number of the accepted bid
        oseq: Order sequence number of the accepted bid
        provider_address: Address of the winning provider
        provider_uri: Service endpoint of the winning provider
        lease_tx_hash: Hash of the lease-creation transaction
        manifest_version: Content hash of the pushed manifest
    """

    model_config = ConfigDict(frozen=True)

    owner: str
    dseq: str
    gseq: str
    oseq: str
    provider_address: str
    provider_uri: str
    lease_tx_hash: str
    manifest_version: str

    def to_metadata(self) -> dict[str, str]:
        """Flatten into the generic metadata map."""
        return self.model_dump()

    @classmethod
    def from_deployment(cls, deployment: Deployment) -> MarketplaceLeaseRef:
        """Read the lease handle, raising MissingMetadataError on absent keys."""
        return cls(**{key: deployment.require(key) for key in cls.model_fields})
