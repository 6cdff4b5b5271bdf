"""Peer connectivity monitor."""

from __future__ import annotations

from perennial.collaborators import PeerClient
from perennial.lib.logging_config import get_logger

logger = get_logger(__name__)


class ConnectivityMonitor:
    """Reconnects the messaging layer when too few peers are connected."""

    def __init__(self, client: PeerClient, min_peers: int = 2) -> None:
        self._client = client
        self.min_peers = min_peers
        self._previous_connected: int | None = None

    async def __call__(self) -> None:
        status = await self._client.peer_status()
        if status.connected != self._previous_connected:
            logger.info(f"Peer status: {status.connected}/{status.total} connected")
            self._previous_connected = status.connected

        if status.connected >= self.min_peers:
            return

        logger.warning(
            f"Only {status.connected} peers connected (min: {self.min_peers}), "
            "reconnecting"
        )
        try:
            await self._client.reconnect()
            after = await self._client.peer_status()
        except Exception:
            logger.exception("Peer reconnection failed")
            return
        logger.info(
            f"Peers before reconnect: {status.connected}/{status.total}, "
            f"after: {after.connected}/{after.total}"
        )
        self._previous_connected = after.connected
