"""Periodic activity summary sent to the operator.

When an inference endpoint is configured, the stats are sent to its
``/api/chat`` route and the returned prose is used as the summary. Any
failure there falls back to the structured text summary.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any

import httpx

from perennial.collaborators import Priority, Storage
from perennial.heartbeat.actions.notify import Notifier
from perennial.lib.logging_config import get_logger

logger = get_logger(__name__)

_PROCESS_START = time.monotonic()

CHAT_PATH = "/api/chat"
SYSTEM_PROMPT = (
    "You generate concise daily activity summaries for an autonomous agent. "
    "Keep it under 280 characters."
)


def process_uptime() -> float:
    """Seconds since this module was imported."""
    return time.monotonic() - _PROCESS_START


class Summarizer:
    """Collects memory statistics and uptime into a low-priority notification."""

    def __init__(
        self,
        storage: Storage | None,
        notifier: Notifier,
        uptime: Callable[[], float] = process_uptime,
        inference_endpoint: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._storage = storage
        self._notifier = notifier
        self._uptime = uptime
        self.inference_endpoint = (
            inference_endpoint.rstrip("/") if inference_endpoint else None
        )
        self._timeout = timeout
        self._transport = transport

    async def collect_stats(self) -> dict[str, Any]:
        entries: int = 0
        last_sync = "unknown"
        if self._storage is not None:
            try:
                stats = await self._storage.get_stats()
            except Exception as e:
                logger.warning(f"Could not read storage stats: {e}")
            else:
                entries = stats.entries
                last_sync = (
                    stats.last_sync.isoformat(timespec="seconds")
                    if stats.last_sync
                    else "never"
                )
        return {
            "memory_entries": entries,
            "last_sync": last_sync,
            "uptime_hours": round(self._uptime() / 3600, 1),
        }

    @staticmethod
    def format_stats(stats: dict[str, Any]) -> str:
        return (
            f"Daily summary: {stats['memory_entries']} memory entries, "
            f"last sync: {stats['last_sync']}, uptime: {stats['uptime_hours']:.1f}h."
        )

    async def build_summary(self) -> str:
        return self.format_stats(await self.collect_stats())

    async def generate_summary(self, stats: dict[str, Any]) -> str | None:
        """Ask the inference endpoint for a prose summary.

        Returns:
            The generated text, or None when no endpoint is configured or the
            endpoint fails or answers without content
        """
        if not self.inference_endpoint:
            return None
        payload = {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": "Generate a brief daily summary from these stats: "
                    + json.dumps(stats),
                },
            ]
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.inference_endpoint}{CHAT_PATH}", json=payload
                )
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Inference summary failed, using structured text: {e}")
            return None

        message = body.get("message") if isinstance(body, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str) and content.strip():
            return content.strip()
        logger.warning("Inference endpoint returned no summary text")
        return None

    async def summarize(self) -> None:
        stats = await self.collect_stats()
        summary = await self.generate_summary(stats) or self.format_stats(stats)
        await self._notifier.notify(summary, Priority.LOW)
