"""Monitor for a balance reported by an external HTTP service."""

from __future__ import annotations

import httpx

from perennial.lib.logging_config import get_logger

logger = get_logger(__name__)

BALANCE_PATH = "/api/balance"


class ExternalBalanceMonitor:
    """Warns when ``GET {endpoint}/api/balance`` reports a low balance.

    Does nothing when no endpoint is configured. An unreachable service is
    logged, not raised.
    """

    def __init__(
        self,
        endpoint: str | None,
        threshold: float = 1.0,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/") if endpoint else None
        self.threshold = threshold
        self._timeout = timeout
        self._transport = transport

    async def fetch_balance(self) -> float | None:
        if not self.endpoint:
            return None
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.get(f"{self.endpoint}{BALANCE_PATH}")
            response.raise_for_status()
            return float(response.json().get("balance") or 0)

    async def __call__(self) -> None:
        if not self.endpoint:
            return
        try:
            balance = await self.fetch_balance()
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"Could not read balance from {self.endpoint}: {e}")
            return

        if balance is not None and balance < self.threshold:
            logger.warning(
                f"External balance low: {balance:g} (threshold: {self.threshold:g})"
            )
