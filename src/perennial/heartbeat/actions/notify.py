"""Rate-limited operator notifications."""

from __future__ import annotations

import time
from collections.abc import Callable

import httpx

from perennial.collaborators import NotificationChannel, Priority
from perennial.lib.logging_config import get_logger

logger = get_logger(__name__)

# Minimum seconds between two deliveries of the same priority
COOLDOWNS: dict[Priority, float] = {
    Priority.LOW: 5 * 60,
    Priority.NORMAL: 60,
}


class LogChannel:
    """Channel that writes notifications to the log."""

    async def send(self, message: str, priority: Priority) -> None:
        if priority == Priority.HIGH:
            logger.warning(f"[notify:{priority.value}] {message}")
        else:
            logger.info(f"[notify:{priority.value}] {message}")


class WebhookChannel:
    """Channel that POSTs ``{"text", "priority"}`` JSON to a webhook."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def send(self, message: str, priority: Priority) -> None:
        """Deliver one notification.

        Raises:
            httpx.HTTPError: On transport errors or a non-2xx response
        """
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            response = await client.post(
                self.url, json={"text": message, "priority": priority.value}
            )
            response.raise_for_status()


class Notifier:
    """Wraps a channel with per-priority rate limiting.

    Low-priority messages are dropped within 5 minutes of the previous low
    delivery, normal ones within 1 minute; high priority is never limited.
    Delivery failures are logged and never raised to the caller.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._channel = channel
        self._clock = clock
        self._last_sent: dict[Priority, float] = {}

    def _rate_limited(self, priority: Priority) -> bool:
        cooldown = COOLDOWNS.get(priority)
        if cooldown is None:
            return False
        now = self._clock()
        last = self._last_sent.get(priority)
        if last is not None and now - last < cooldown:
            return True
        self._last_sent[priority] = now
        return False

    async def notify(
        self, message: str, priority: Priority | str = Priority.NORMAL
    ) -> bool:
        """Send a notification unless rate limited.

        Returns:
            True if the message was handed to the channel successfully
        """
        level = Priority(priority)
        if self._rate_limited(level):
            logger.debug(f"Suppressed {level.value} notification: {message}")
            return False

        try:
            await self._channel.send(message, level)
        except Exception:
            logger.exception(f"Failed to deliver {level.value} notification")
            return False
        return True
