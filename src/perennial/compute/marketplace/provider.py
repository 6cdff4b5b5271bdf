"""Auction marketplace compute provider.

Deploy lifecycle:

1. Render the manifest and hash it into a version identifier
2. Broadcast a deployment-creation transaction with an escrow deposit
3. Poll for open bids until the bid window closes
4. Accept the cheapest bid with a lease-creation transaction
5. Resolve the winner's endpoint and push the manifest to it
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import httpx
from ulid import ULID

from perennial.compute.base import ComputeProvider
from perennial.compute.marketplace.chain import (
    MarketplaceClient,
    TransactionSigner,
    ensure_success,
)
from perennial.compute.marketplace.lease import MarketplaceLeaseRef
from perennial.compute.marketplace.manifest import manifest_version, render_manifest
from perennial.compute.marketplace.messages import (
    Message,
    close_deployment_msg,
    close_lease_msg,
    create_deployment_msg,
    create_lease_msg,
    default_fee,
)
from perennial.compute.marketplace.monitor import LeaseMonitor, LeaseStatus
from perennial.lib.errors import DeploymentError
from perennial.lib.logging_config import get_logger
from perennial.models.config import MarketplaceProviderConfig
from perennial.models.deployment import (
    Balance,
    Bid,
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    FundingResult,
    HealthCheckResult,
)

logger = get_logger(__name__)

# Smallest units per display unit (uakt -> AKT)
UNITS_PER_DISPLAY = 1_000_000
LOG_SERVICE = "agent"

LEASE_STATUS_MAP: dict[LeaseStatus, DeploymentStatus] = {
    LeaseStatus.ACTIVE: DeploymentStatus.RUNNING,
    LeaseStatus.CLOSED: DeploymentStatus.STOPPED,
    LeaseStatus.INSUFFICIENT_FUNDS: DeploymentStatus.FAILED,
}


class MarketplaceProvider(ComputeProvider):
    """Deploy workloads through an on-chain auction."""

    def __init__(
        self,
        config: MarketplaceProviderConfig,
        signer: TransactionSigner,
        *,
        name: str = "marketplace",
        client: MarketplaceClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the marketplace provider.

        Args:
            config: Marketplace configuration
            signer: Capability that signs and broadcasts transactions
            name: Provider name recorded on deployments
            client: REST client (built from ``config`` when omitted)
            sleep: Coroutine used between bid polls
            clock: Monotonic clock bounding the bid window
        """
        super().__init__(name)
        self._config = config
        self._signer = signer
        self._client = client or MarketplaceClient(
            config.rest_endpoint, timeout=config.request_timeout
        )
        self._monitor = LeaseMonitor(self._client)
        self._sleep = sleep
        self._clock = clock
        self._last_dseq = 0

    @property
    def monitor(self) -> LeaseMonitor:
        return self._monitor

    async def owner_address(self) -> str:
        """Address that owns deployments and pays for leases."""
        return self._config.owner_address or await self._signer.get_address()

    def _next_dseq(self) -> str:
        # Millisecond timestamps, bumped so two deploys never share one
        candidate = ULID().milliseconds
        if candidate <= self._last_dseq:
            candidate = self._last_dseq + 1
        self._last_dseq = candidate
        return str(candidate)

    async def _broadcast(self, messages: list[Message], operation: str) -> str:
        result = await self._signer.sign_and_broadcast(
            messages, default_fee(self._config.denom)
        )
        return ensure_success(result, operation)

    @staticmethod
    def select_bid(bids: list[Bid]) -> Bid | None:
        """Pick the cheapest bid; equal prices keep enumeration order."""
        if not bids:
            return None
        return sorted(bids, key=lambda bid: bid.price)[0]

    async def wait_for_bids(self, owner: str, dseq: str) -> Bid | None:
        """Poll for open bids until one arrives or the bid window closes.

        Query failures count as an empty poll. Returns None when the window
        closes without bids.
        """
        deadline = self._clock() + self._config.bid_wait_seconds
        while True:
            try:
                bids = await self._client.fetch_open_bids(owner, dseq)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Bid query for dseq {dseq} failed: {e}")
                bids = []

            selected = self.select_bid(bids)
            if selected is not None:
                logger.info(
                    f"Selected bid from {selected.provider} at {selected.price} "
                    f"{self._config.denom} ({len(bids)} open bid(s))"
                )
                return selected

            remaining = deadline - self._clock()
            if remaining <= 0:
                return None
            await self._sleep(min(self._config.bid_poll_seconds, remaining))

    async def _resolve_provider_uri(self, bid: Bid) -> str:
        if bid.provider_uri:
            return bid.provider_uri
        try:
            uri = await self._client.fetch_provider_uri(bid.provider)
        except (httpx.HTTPError, ValueError) as e:
            raise DeploymentError(
                operation="deploy",
                message=f"Could not resolve endpoint of provider {bid.provider}: {e}",
            ) from e
        if not uri:
            raise DeploymentError(
                operation="deploy",
                message=f"Provider {bid.provider} has no registered endpoint",
            )
        return uri

    async def _close_unfilled_order(self, owner: str, dseq: str) -> None:
        try:
            await self._broadcast([close_deployment_msg(owner, dseq)], "deploy")
        except DeploymentError as e:
            logger.warning(f"Could not close unfilled deployment {owner}/{dseq}: {e}")

    async def deploy(self, config: DeploymentConfig) -> Deployment:
        """Run the auction and start the workload on the winning provider."""
        manifest = render_manifest(
            config,
            pricing_amount=self._config.pricing_amount,
            denom=self._config.denom,
        )
        version = manifest_version(manifest)
        owner = await self.owner_address()
        dseq = self._next_dseq()
        deployment_id = f"{owner}/{dseq}"

        logger.info(f"Creating marketplace deployment {deployment_id} for {config.image}")
        tx_hash = await self._broadcast(
            [
                create_deployment_msg(
                    owner,
                    dseq,
                    version,
                    self._config.deposit_amount,
                    self._config.denom,
                )
            ],
            "deploy",
        )

        bid = await self.wait_for_bids(owner, dseq)
        if bid is None:
            message = (
                f"No bids received within {self._config.bid_wait_seconds:g}s"
            )
            logger.warning(f"Deployment {deployment_id}: {message}")
            await self._close_unfilled_order(owner, dseq)
            return Deployment(
                id=deployment_id,
                provider=self.name,
                status=DeploymentStatus.FAILED,
                config=config,
                metadata={
                    "owner": owner,
                    "dseq": dseq,
                    "tx_hash": tx_hash,
                    "manifest_version": version,
                    "error": message,
                },
            )

        try:
            lease_tx_hash = await self._broadcast(
                [create_lease_msg(owner, dseq, bid.provider, bid.gseq, bid.oseq)],
                "deploy",
            )
            provider_uri = await self._resolve_provider_uri(bid)
            await self._client.send_manifest(provider_uri, dseq, manifest)
        except DeploymentError as e:
            logger.warning(f"Deployment {deployment_id} failed after bidding: {e}")
            await self._close_unfilled_order(owner, dseq)
            raise

        lease = MarketplaceLeaseRef(
            owner=owner,
            dseq=dseq,
            gseq=bid.gseq,
            oseq=bid.oseq,
            provider_address=bid.provider,
            provider_uri=provider_uri,
            lease_tx_hash=lease_tx_hash,
            manifest_version=version,
        )
        logger.info(f"Deployment {deployment_id} leased to {bid.provider}")
        return Deployment(
            id=deployment_id,
            provider=self.name,
            status=DeploymentStatus.RUNNING,
            config=config,
            metadata={**lease.to_metadata(), "tx_hash": tx_hash},
        )

    async def status(self, deployment: Deployment) -> DeploymentStatus:
        lease_status = await self._monitor.lease_status(deployment.id)
        return LEASE_STATUS_MAP.get(lease_status, DeploymentStatus.UNKNOWN)

    async def health_check(self, deployment: Deployment) -> HealthCheckResult:
        return await self._monitor.check_health(deployment)

    async def destroy(self, deployment: Deployment) -> None:
        """Close the lease (best effort) and then the deployment order.

        Raises:
            MissingMetadataError: If owner or dseq are missing, or a leased
                deployment lacks its gseq or oseq
            TransactionError: If closing the deployment is rejected
        """
        owner = deployment.require("owner")
        dseq = deployment.require("dseq")
        provider_address = deployment.metadata.get("provider_address")
        if provider_address:
            gseq = deployment.require("gseq")
            oseq = deployment.require("oseq")

        try:
            state = await self._client.fetch_deployment_state(owner, dseq)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Deployment state query for {owner}/{dseq} failed: {e}")
            state = "active"
        if state is None or state == "closed":
            logger.info(f"Deployment {owner}/{dseq} is already closed")
            return

        if provider_address:
            try:
                await self._broadcast(
                    [close_lease_msg(owner, dseq, provider_address, gseq, oseq)],
                    "destroy",
                )
            except DeploymentError as e:
                logger.warning(f"Closing lease for {owner}/{dseq} failed: {e}")

        await self._broadcast([close_deployment_msg(owner, dseq)], "destroy")
        logger.info(f"Closed marketplace deployment {owner}/{dseq}")

    async def fund(self, amount: float) -> FundingResult:
        """Return deposit instructions; funds are sent to the owner externally."""
        owner = await self.owner_address()
        denom = self._config.display_denom
        what = f"{amount:g} {denom}" if amount > 0 else denom
        return FundingResult(
            success=True,
            message=f"Send {what} to {owner} to fund deployments.",
        )

    async def get_balance(self) -> Balance:
        owner = await self.owner_address()
        try:
            units = await self._client.fetch_balance(owner, self._config.denom)
        except (httpx.HTTPError, ValueError) as e:
            raise DeploymentError(
                operation="balance", message=f"Balance query failed: {e}"
            ) from e
        return Balance(
            amount=units / UNITS_PER_DISPLAY, denom=self._config.display_denom
        )

    async def get_logs(self, deployment: Deployment, lines: int = 100) -> list[str]:
        """Fetch recent log lines from the winning provider."""
        lease = MarketplaceLeaseRef.from_deployment(deployment)
        try:
            response = await self._client.fetch_lease_logs(
                lease.provider_uri,
                lease.dseq,
                lease.gseq,
                lease.oseq,
                lines,
                LOG_SERVICE,
            )
        except httpx.HTTPError as e:
            raise DeploymentError(
                operation="logs", message=f"Failed to fetch logs: {e}"
            ) from e
        if response.is_error:
            raise DeploymentError(
                operation="logs",
                message=f"Provider returned HTTP {response.status_code}",
            )
        return [line for line in response.text.splitlines() if line]
