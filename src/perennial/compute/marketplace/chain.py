"""Marketplace chain access: transaction signing and REST queries.

Signing and broadcasting are an external capability behind the
TransactionSigner protocol. Queries go to the chain's REST endpoint and to
the winning provider's own API over httpx, every request with a timeout.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

import httpx

from perennial.compute.marketplace.messages import Message
from perennial.lib.errors import DeploymentError, TransactionError
from perennial.lib.logging_config import get_logger
from perennial.models.deployment import Bid

logger = get_logger(__name__)

MANIFEST_TIMEOUT = 15.0


@dataclass(frozen=True)
class TxResult:
    """Result of a broadcast transaction."""

    code: int
    tx_hash: str
    raw_log: str | None = None


class TransactionSigner(Protocol):
    """Signs and broadcasts marketplace transactions for one account."""

    async def get_address(self) -> str: ...

    async def sign_and_broadcast(
        self, messages: list[Message], fee: dict[str, Any]
    ) -> TxResult: ...


def ensure_success(result: TxResult, operation: str) -> str:
    """Return the transaction hash or raise TransactionError."""
    if result.code != 0:
        raise TransactionError(operation, result.code, result.raw_log)
    return result.tx_hash


class RemoteSigner:
    """TransactionSigner backed by an external signing service.

    The service exposes ``GET /address`` returning ``{"address": ...}`` and
    ``POST /broadcast`` accepting ``{"chain_id", "messages", "fee"}`` and
    returning ``{"code", "transaction_hash", "raw_log"}``.
    """

    def __init__(
        self,
        signer_url: str,
        chain_id: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = signer_url.rstrip("/")
        self._chain_id = chain_id
        self._timeout = timeout
        self._transport = transport
        self._address: str | None = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def get_address(self) -> str:
        if self._address is None:
            try:
                async with self._client() as client:
                    response = await client.get(f"{self._url}/address")
                    response.raise_for_status()
                    self._address = str(response.json()["address"])
            except (httpx.HTTPError, KeyError, ValueError) as exc:
                raise DeploymentError(
                    operation="signer",
                    message=f"Could not resolve signer address: {exc}",
                ) from exc
        return self._address

    async def sign_and_broadcast(
        self, messages: list[Message], fee: dict[str, Any]
    ) -> TxResult:
        payload = {"chain_id": self._chain_id, "messages": messages, "fee": fee}
        try:
            async with self._client() as client:
                response = await client.post(f"{self._url}/broadcast", json=payload)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise DeploymentError(
                operation="broadcast",
                message=f"Signing service request failed: {exc}",
            ) from exc
        return TxResult(
            code=int(body.get("code", 0)),
            tx_hash=str(body.get("transaction_hash", "")),
            raw_log=body.get("raw_log"),
        )


class ReadOnlySigner:
    """Signer for a known address with no signing capability.

    Lets balance and status queries run when no signing service is
    configured; any broadcast fails with a DeploymentError.
    """

    def __init__(self, address: str) -> None:
        self._address = address

    async def get_address(self) -> str:
        return self._address

    async def sign_and_broadcast(
        self, messages: list[Message], fee: dict[str, Any]
    ) -> TxResult:
        raise DeploymentError(
            operation="broadcast",
            message="No signing service configured (set marketplace.signer_url)",
        )


class MarketplaceClient:
    """Read-side access to the marketplace REST API and provider endpoints."""

    def __init__(
        self,
        rest_endpoint: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.rest_endpoint = rest_endpoint.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout or self.timeout, transport=self._transport
        )

    async def _get_json(self, url: str, params: dict[str, str] | None = None) -> Any:
        async with self._client() as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()

    async def fetch_open_bids(self, owner: str, dseq: str) -> list[Bid]:
        """Return open bids for a deployment in enumeration order.

        Raises:
            httpx.HTTPError: On transport errors or non-2xx responses
        """
        body = await self._get_json(
            f"{self.rest_endpoint}/akash/market/v1beta4/bids/list",
            params={"filters.owner": owner, "filters.dseq": dseq},
        )
        bids: list[Bid] = []
        for item in body.get("bids") or []:
            bid = item.get("bid") or {}
            if bid.get("state") != "open":
                continue
            bid_id = bid.get("bid_id") or {}
            amount = (bid.get("price") or {}).get("amount") or "0"
            try:
                price = Decimal(str(amount))
            except InvalidOperation:
                logger.warning(f"Skipping bid with malformed price {amount!r}")
                continue
            bids.append(
                Bid(
                    provider=bid_id.get("provider", ""),
                    gseq=str(bid_id.get("gseq", "1")),
                    oseq=str(bid_id.get("oseq", "1")),
                    price=price,
                )
            )
        return bids

    async def fetch_lease_state(self, owner: str, dseq: str) -> str | None:
        """Return the on-chain state of the first lease, or None."""
        body = await self._get_json(
            f"{self.rest_endpoint}/akash/market/v1beta4/leases/list",
            params={"filters.owner": owner, "filters.dseq": dseq},
        )
        leases = body.get("leases") or []
        if not leases:
            return None
        return (leases[0].get("lease") or {}).get("state")

    async def fetch_deployment_state(self, owner: str, dseq: str) -> str | None:
        """Return the on-chain state of a deployment order, or None if unknown."""
        async with self._client() as client:
            response = await client.get(
                f"{self.rest_endpoint}/akash/deployment/v1beta3/deployments/info",
                params={"id.owner": owner, "id.dseq": dseq},
            )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return (response.json().get("deployment") or {}).get("state")

    async def fetch_provider_uri(self, provider_address: str) -> str | None:
        """Resolve a provider's service endpoint from its address."""
        body = await self._get_json(
            f"{self.rest_endpoint}/akash/provider/v1beta3/providers/{provider_address}"
        )
        uri = (body.get("provider") or {}).get("host_uri")
        return uri.rstrip("/") if uri else None

    async def fetch_balance(self, address: str, denom: str) -> int:
        """Return an account balance in smallest units."""
        body = await self._get_json(
            f"{self.rest_endpoint}/cosmos/bank/v1beta1/balances/{address}/by_denom",
            params={"denom": denom},
        )
        return int((body.get("balance") or {}).get("amount") or 0)

    async def send_manifest(self, provider_uri: str, dseq: str, manifest: str) -> None:
        """PUT the rendered manifest to the winning provider.

        Raises:
            DeploymentError: If the provider rejects the manifest or is unreachable
        """
        url = f"{provider_uri}/deployment/{dseq}/manifest"
        try:
            async with self._client(MANIFEST_TIMEOUT) as client:
                response = await client.put(
                    url,
                    content=manifest.encode("utf-8"),
                    headers={"Content-Type": "application/yaml"},
                )
        except httpx.HTTPError as exc:
            raise DeploymentError(
                operation="deploy", message=f"Failed to send manifest: {exc}"
            ) from exc
        if response.is_error:
            raise DeploymentError(
                operation="deploy",
                message=f"Failed to send manifest: HTTP {response.status_code}",
            )

    async def fetch_lease_status(
        self, provider_uri: str, dseq: str, gseq: str, oseq: str
    ) -> httpx.Response:
        """Query the provider's status endpoint for a lease."""
        async with self._client(MANIFEST_TIMEOUT) as client:
            return await client.get(f"{provider_uri}/lease/{dseq}/{gseq}/{oseq}/status")

    async def fetch_lease_logs(
        self,
        provider_uri: str,
        dseq: str,
        gseq: str,
        oseq: str,
        lines: int,
        service: str,
    ) -> httpx.Response:
        """Fetch recent log lines for a lease from the provider."""
        async with self._client() as client:
            return await client.get(
                f"{provider_uri}/lease/{dseq}/{gseq}/{oseq}/logs",
                params={"follow": "false", "tail": str(lines), "service": service},
            )
