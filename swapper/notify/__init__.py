"""Notifications for Swapper."""

from swapper.notify.channels import DiscordChannel, NotificationChannel, TelegramChannel
from swapper.notify.notifier import Notifier

__all__ = ["DiscordChannel", "NotificationChannel", "Notifier", "TelegramChannel"]
