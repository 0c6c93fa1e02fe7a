"""Notification channels."""

import html
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

import aiohttp

from swapper.models import SwapRecord

logger = logging.getLogger(__name__)

LEVELS = ("success", "warning", "error")

DISCORD_COLORS = {"success": 0x00FF00, "warning": 0xFFAA00, "error": 0xFF0000}
LEVEL_ICONS = {"success": "✅", "warning": "⚠️", "error": "❌"}


class NotificationChannel(ABC):
    """One delivery target for human-readable events."""

    name: str = "channel"

    def __init__(self, request_timeout: float = 10.0):
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _post(self, url: str, payload: dict) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        async with self._session.post(url, json=payload) as response:
            if response.status >= 400:
                body = await response.text()
                raise RuntimeError(f"{self.name} API error {response.status}: {body}")

    @abstractmethod
    async def send(self, level: str, message: str, record: Optional[SwapRecord] = None) -> None:
        """Deliver one notification. May raise; the notifier absorbs errors."""

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


class DiscordChannel(NotificationChannel):
    """Discord webhook with an embed per notification."""

    name = "discord"

    def __init__(self, webhook_url: str, title: str = "Swapper", **kwargs):
        super().__init__(**kwargs)
        self._webhook_url = webhook_url
        self._title = title

    def build_payload(self, level: str, message: str, record: Optional[SwapRecord] = None) -> dict:
        embed = {
            "title": f"{self._title} - {level.upper()}",
            "description": message,
            "color": DISCORD_COLORS.get(level, DISCORD_COLORS["warning"]),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if record is not None:
            embed["fields"] = [
                {"name": "From", "value": f"{record.source_amount_display} {record.source_asset}", "inline": True},
                {"name": "To", "value": f"{record.dest_amount_display} {record.dest_asset}", "inline": True},
                {"name": "Cost Basis", "value": f"${record.cost_basis_usd:.2f}", "inline": True},
                {"name": "Status", "value": record.status.value, "inline": True},
                {"name": "TX Hash", "value": record.primary_tx_ref or "N/A", "inline": False},
            ]
        return {"embeds": [embed]}

    async def send(self, level: str, message: str, record: Optional[SwapRecord] = None) -> None:
        await self._post(self._webhook_url, self.build_payload(level, message, record))
        logger.debug("Discord notification sent")


class TelegramChannel(NotificationChannel):
    """Telegram bot message, HTML formatted."""

    name = "telegram"

    def __init__(self, bot_token: str, chat_id: str, title: str = "Swapper", **kwargs):
        super().__init__(**kwargs)
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._title = title

    def format_message(self, level: str, message: str, record: Optional[SwapRecord] = None) -> str:
        icon = LEVEL_ICONS.get(level, "📌")
        lines = [f"{icon} <b>{html.escape(self._title)} {level.upper()}</b>", "", html.escape(message)]
        if record is not None:
            lines += [
                "",
                f"<b>From:</b> {record.source_amount_display} {html.escape(record.source_asset)}",
                f"<b>To:</b> {record.dest_amount_display} {html.escape(record.dest_asset)}",
                f"<b>Cost Basis:</b> ${record.cost_basis_usd:.2f}",
                f"<b>Status:</b> {record.status.value}",
            ]
            if record.primary_tx_ref:
                lines.append(f"<b>TX Hash:</b> <code>{html.escape(record.primary_tx_ref)}</code>")
        return "\n".join(lines)

    async def send(self, level: str, message: str, record: Optional[SwapRecord] = None) -> None:
        url = f"https://api.telegram.org/bot{self._bot_token}/sendMessage"
        await self._post(
            url,
            {
                "chat_id": self._chat_id,
                "text": self.format_message(level, message, record),
                "parse_mode": "HTML",
            },
        )
        logger.debug("Telegram notification sent")
