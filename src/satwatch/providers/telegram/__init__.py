"""Telegram provider."""

from satwatch.providers.telegram.commands import CommandContext, WatchCommands
from satwatch.providers.telegram.provider import TelegramProvider
from satwatch.providers.telegram.sink import TelegramNotificationSink

__all__ = [
    "CommandContext",
    "TelegramNotificationSink",
    "TelegramProvider",
    "WatchCommands",
]
