"""Interfaces of the external collaborators the heartbeat depends on."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol, runtime_checkable


class Priority(str, Enum):
    """Notification priority tiers."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


@dataclass(frozen=True)
class StorageStats:
    """Summary of the memory store.

    Attributes:
        entries: Number of stored entries
        last_sync: Time of the last successful sync, if any
    """

    entries: int
    last_sync: datetime | None = None


@dataclass(frozen=True)
class PeerStatus:
    """Connected vs. configured peers of the messaging layer."""

    connected: int
    total: int


@runtime_checkable
class Storage(Protocol):
    """Key-value memory store with a durable remote leg.

    ``sync_from_relays`` pulls durable remote state into the local cache and
    must be safe to call repeatedly.
    """

    async def get(self, key: str) -> str | None: ...

    async def set(
        self, key: str, value: str, metadata: dict[str, str] | None = None
    ) -> None: ...

    async def sync_from_relays(self) -> None: ...

    async def get_stats(self) -> StorageStats: ...


@runtime_checkable
class NotificationChannel(Protocol):
    """Outbound alert transport."""

    async def send(self, message: str, priority: Priority) -> None: ...


@runtime_checkable
class PeerClient(Protocol):
    """Messaging-layer client whose peer connections are monitored."""

    async def peer_status(self) -> PeerStatus: ...

    async def reconnect(self) -> None: ...
