"""Best-effort notifier fanning out to every configured channel."""

import asyncio
import logging
from typing import Optional, Sequence

from swapper.models import SwapRecord
from swapper.notify.channels import LEVELS, NotificationChannel

logger = logging.getLogger(__name__)


class Notifier:
    """Sends each notification to all channels concurrently.

    Delivery is best effort: channel failures are logged and never
    raised to the caller.
    """

    def __init__(self, channels: Sequence[NotificationChannel] = ()):
        self._channels = list(channels)

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._channels)

    async def notify(self, level: str, message: str, record: Optional[SwapRecord] = None) -> None:
        if level not in LEVELS:
            logger.warning("Unknown notification level %r, sending as warning", level)
            level = "warning"

        if not self._channels:
            logger.debug("No notification channels configured: [%s] %s", level, message)
            return

        results = await asyncio.gather(
            *(channel.send(level, message, record) for channel in self._channels),
            return_exceptions=True,
        )
        for channel, result in zip(self._channels, results):
            if isinstance(result, Exception):
                logger.error("Failed to send %s notification: %s", channel.name, result)

    async def send_daily_summary(self, stats: dict) -> None:
        message = (
            "Daily Summary:\n"
            f"Total Transactions: {stats['total_transactions']}\n"
            f"Successful: {stats['successful_transactions']}\n"
            f"Total Volume: ${stats['total_volume_usd']:.2f}\n"
            f"Average Rate: {stats['average_rate']:.6f}"
        )
        await self.notify("success", message)

    async def close(self) -> None:
        for channel in self._channels:
            await channel.close()
