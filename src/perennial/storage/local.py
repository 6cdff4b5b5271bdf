"""JSON-file memory store used by the CLI."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from perennial.collaborators import StorageStats
from perennial.lib.errors import StorageError
from perennial.lib.logging_config import get_logger

logger = get_logger(__name__)

MEMORY_FILE = "memory.json"


class MemoryEntry(BaseModel):
    """A stored value with optional metadata."""

    value: str
    metadata: dict[str, str] = Field(default_factory=dict)
    updated_at: datetime


class MemoryFile(BaseModel):
    """On-disk layout of the memory store."""

    entries: dict[str, MemoryEntry] = Field(default_factory=dict)
    last_sync: datetime | None = None


class LocalStorage:
    """Storage backed by a single JSON file under the state directory.

    There is no remote leg, so ``set`` is durable once the file is written and
    ``sync_from_relays`` only records the sync time.
    """

    def __init__(self, state_dir: Path) -> None:
        self.path = state_dir / MEMORY_FILE

    def _load(self) -> MemoryFile:
        if not self.path.exists():
            return MemoryFile()
        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read memory file {self.path}: {e}") from e
        if not content.strip():
            return MemoryFile()
        try:
            return MemoryFile.model_validate_json(content)
        except ValidationError as e:
            raise StorageError(f"Invalid memory file {self.path}: {e}") from e

    def _save(self, data: MemoryFile) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(data.model_dump(mode="json"), indent=2, sort_keys=True)
            self.path.write_text(payload, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write memory file {self.path}: {e}") from e

    async def get(self, key: str) -> str | None:
        entry = self._load().entries.get(key)
        return entry.value if entry else None

    async def set(
        self, key: str, value: str, metadata: dict[str, str] | None = None
    ) -> None:
        data = self._load()
        data.entries[key] = MemoryEntry(
            value=value,
            metadata=metadata or {},
            updated_at=datetime.now(timezone.utc),
        )
        self._save(data)

    async def sync_from_relays(self) -> None:
        data = self._load()
        data.last_sync = datetime.now(timezone.utc)
        self._save(data)
        logger.debug(f"Memory sync recorded ({len(data.entries)} entries)")

    async def get_stats(self) -> StorageStats:
        data = self._load()
        return StorageStats(entries=len(data.entries), last_sync=data.last_sync)

    def wipe(self) -> int:
        """Delete all entries; returns how many were removed."""
        data = self._load()
        removed = len(data.entries)
        self._save(MemoryFile())
        logger.info(f"Wiped {removed} memory entries from {self.path}")
        return removed
