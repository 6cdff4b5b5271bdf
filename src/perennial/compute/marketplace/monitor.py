"""Marketplace lease monitoring.

Queries on-chain lease state and the winning provider's status endpoint to
decide whether a deployment is healthy, degraded, or closed.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from enum import Enum

import httpx

from perennial.compute.marketplace.chain import MarketplaceClient
from perennial.lib.logging_config import get_logger
from perennial.models.deployment import Deployment, HealthCheckResult

logger = get_logger(__name__)

# Metadata needed to address a lease on the provider's API
LEASE_KEYS = ("provider_uri", "dseq", "gseq", "oseq")


def _available_replicas(service: object) -> int:
    if not isinstance(service, dict):
        return 0
    try:
        return int(service.get("available") or 0)
    except (TypeError, ValueError):
        return 0


class LeaseStatus(str, Enum):
    """Lease state as reported by the chain."""

    ACTIVE = "active"
    CLOSED = "closed"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    UNKNOWN = "unknown"


class LeaseMonitor:
    """Health and lease-state probes for marketplace deployments."""

    def __init__(self, client: MarketplaceClient) -> None:
        self._client = client

    async def lease_status(self, deployment_id: str) -> LeaseStatus:
        """Return the on-chain lease state for an ``owner/dseq`` deployment id.

        Unreachable endpoints and unexpected states map to ``UNKNOWN``.
        """
        owner, _, dseq = deployment_id.partition("/")
        if not owner or not dseq:
            return LeaseStatus.UNKNOWN

        try:
            state = await self._client.fetch_lease_state(owner, dseq)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Lease state query for {deployment_id} failed: {e}")
            return LeaseStatus.UNKNOWN

        try:
            return LeaseStatus(state)
        except ValueError:
            return LeaseStatus.UNKNOWN

    async def check_health(self, deployment: Deployment) -> HealthCheckResult:
        """Probe the provider's lease status endpoint.

        Healthy when at least one service reports an available replica.
        Missing metadata, an unreachable provider or a malformed status body
        yields an unhealthy result instead of an exception.
        """
        missing = [key for key in LEASE_KEYS if not deployment.metadata.get(key)]
        if missing:
            return HealthCheckResult(
                healthy=False,
                message=f"Missing {', '.join(missing)} in deployment metadata",
            )
        metadata = deployment.metadata

        start = time.monotonic()
        try:
            response = await self._client.fetch_lease_status(
                metadata["provider_uri"],
                metadata["dseq"],
                metadata["gseq"],
                metadata["oseq"],
            )
        except httpx.HTTPError as e:
            return HealthCheckResult(
                healthy=False,
                latency_ms=(time.monotonic() - start) * 1000,
                message=f"Health check failed: {e}",
            )
        latency_ms = (time.monotonic() - start) * 1000

        if response.is_error:
            return HealthCheckResult(
                healthy=False,
                latency_ms=latency_ms,
                message=f"Provider returned HTTP {response.status_code}",
            )

        try:
            body = response.json()
        except ValueError:
            body = None
        services = body.get("services") if isinstance(body, dict) else None
        if not isinstance(services, dict):
            return HealthCheckResult(
                healthy=False,
                latency_ms=latency_ms,
                message="Malformed lease status response",
            )

        healthy = any(_available_replicas(service) > 0 for service in services.values())
        return HealthCheckResult(
            healthy=healthy,
            latency_ms=latency_ms,
            message="Container running" if healthy else "No available replicas",
        )

    def is_lease_expiring(
        self,
        deployment: Deployment,
        threshold_hours: float,
        now: datetime | None = None,
    ) -> bool:
        """Time-based guess at whether the escrow is close to running out.

        Compares the deployment age against ``threshold_hours``; no escrow
        data is consulted.
        """
        current = now or datetime.now(timezone.utc)
        elapsed_hours = (current - deployment.created_at).total_seconds() / 3600
        return elapsed_hours >= threshold_hours
