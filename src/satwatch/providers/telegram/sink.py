"""Notification sink that posts pass announcements to Telegram chats."""

from __future__ import annotations

import logging

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError

from satwatch.errors import DeliveryError
from satwatch.formatting import format_notification
from satwatch.providers.telegram.provider import split_message
from satwatch.watches.types import PassNotification

logger = logging.getLogger("telegram")


class TelegramNotificationSink:
    """Delivers each batch as one message (split only past Telegram's limit)."""

    def __init__(self, bot: Bot):
        self._bot = bot

    async def deliver(self, channel_id: str, batch: list[PassNotification]) -> None:
        if not batch:
            return
        text = format_notification(batch)
        try:
            for chunk in split_message(text):
                await self._bot.send_message(chat_id=channel_id, text=chunk)
        except TelegramAPIError as e:
            raise DeliveryError(f"Telegram rejected message to {channel_id}: {e}") from e

        logger.debug(
            "notification_sent",
            extra={"chat_id": channel_id, "watch.passes": len(batch)},
        )
