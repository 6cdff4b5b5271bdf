"""Auction-based marketplace backend."""

from perennial.compute.marketplace.chain import (
    MarketplaceClient,
    RemoteSigner,
    TransactionSigner,
    TxResult,
)
from perennial.compute.marketplace.lease import MarketplaceLeaseRef
from perennial.compute.marketplace.monitor import LeaseMonitor, LeaseStatus
from perennial.compute.marketplace.provider import MarketplaceProvider

__all__ = [
    "LeaseMonitor",
    "LeaseStatus",
    "MarketplaceClient",
    "MarketplaceLeaseRef",
    "MarketplaceProvider",
    "RemoteSigner",
    "TransactionSigner",
    "TxResult",
]
