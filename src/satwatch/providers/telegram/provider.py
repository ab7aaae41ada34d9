"""Telegram provider using aiogram."""

from __future__ import annotations

import logging

from aiogram import Bot, Dispatcher
from aiogram.filters import Command, CommandObject
from aiogram.types import BotCommand
from aiogram.types import Message as TelegramMessage

from satwatch.errors import SatwatchError
from satwatch.providers.telegram.commands import (
    COMMANDS,
    CommandContext,
    WatchCommands,
)

logger = logging.getLogger("telegram")

MAX_SEND_LENGTH = 4000  # Below Telegram's 4096 limit


def split_message(text: str, max_length: int = MAX_SEND_LENGTH) -> list[str]:
    """Split text into chunks, preferring blank lines, then newlines."""
    chunks: list[str] = []
    remaining = text
    while len(remaining) > max_length:
        region = remaining[:max_length]
        split_at = region.rfind("\n\n")
        if split_at <= 0:
            split_at = region.rfind("\n")
        if split_at <= 0:
            split_at = max_length
        chunks.append(remaining[:split_at].rstrip())
        remaining = remaining[split_at:].lstrip()
    if remaining:
        chunks.append(remaining)
    return chunks


class TelegramProvider:
    """Telegram bot front end using aiogram 3.x.

    Replies are plain text; no parse mode is set, so names containing
    markdown characters render as typed.
    """

    def __init__(
        self,
        bot_token: str,
        allowed_users: list[str] | None = None,
    ):
        self._commands: WatchCommands | None = None
        self._allowed_users = set(allowed_users or [])
        self._bot = Bot(token=bot_token)
        self._dp = Dispatcher()
        self._running = False
        self._bot_username: str | None = None

    @property
    def name(self) -> str:
        return "telegram"

    @property
    def bot(self) -> Bot:
        return self._bot

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dp

    @property
    def bot_username(self) -> str | None:
        return self._bot_username

    def set_commands(self, commands: WatchCommands) -> None:
        """Set the command set served by the bot."""
        self._commands = commands

    def _is_user_allowed(self, user_id: int, username: str | None) -> bool:
        if not self._allowed_users:
            return True
        return str(user_id) in self._allowed_users or (
            username is not None and f"@{username}" in self._allowed_users
        )

    async def send_message(self, chat_id: str, text: str) -> None:
        for chunk in split_message(text):
            await self._bot.send_message(chat_id=chat_id, text=chunk)

    async def handle_command(
        self, name: str, message: TelegramMessage, args: str | None
    ) -> str | None:
        """Run a command on behalf of ``message``'s sender.

        Returns the reply text, or None when the sender is not allowed.
        """
        user = message.from_user
        if user is None or not self._is_user_allowed(user.id, user.username):
            logger.info(
                "command_rejected",
                extra={
                    "command.name": name,
                    "chat_id": str(message.chat.id),
                    "user_id": str(user.id) if user else None,
                    "skip_reason": "user_not_allowed" if user else "no_user",
                },
            )
            return None

        ctx = CommandContext(
            user_id=str(user.id),
            chat_id=str(message.chat.id),
            language_code=user.language_code,
        )
        if self._commands is None:
            raise RuntimeError("no commands set on the Telegram provider")
        try:
            return await self._commands.dispatch(name, ctx, args)
        except SatwatchError as e:
            logger.info(
                "command_failed",
                extra={
                    "command.name": name,
                    "error.type": type(e).__name__,
                    "error.message": str(e),
                },
            )
            return f"Error: {e}"
        except Exception as e:
            logger.exception(
                "command_error",
                extra={"command.name": name, "error.message": str(e)},
            )
            return "Error: something went wrong, check the logs"

    async def start(self) -> None:
        """Start long polling. Returns when polling stops."""
        if self._commands is None:
            raise RuntimeError("no commands set on the Telegram provider")
        self._setup_handlers(self._commands)

        try:
            bot_info = await self._bot.get_me()
            self._bot_username = bot_info.username
            logger.info(
                "bot_username_resolved",
                extra={"telegram.bot_username": self._bot_username},
            )
        except Exception as e:
            logger.warning("bot_info_failed", extra={"error.message": str(e)})

        try:
            await self._bot.set_my_commands(
                [
                    BotCommand(command=spec.name, description=spec.description)
                    for spec in COMMANDS
                ]
            )
        except Exception as e:
            logger.warning("bot_commands_failed", extra={"error.message": str(e)})

        self._running = True

        logger.info("telegram_bot_starting")
        await self._bot.delete_webhook(drop_pending_updates=False)
        # Disable aiogram's signal handling - let the app handle SIGINT/SIGTERM
        await self._dp.start_polling(
            self._bot,
            handle_signals=False,
            close_bot_session=False,  # We close it ourselves in stop()
        )

    async def stop(self) -> None:
        """Stop the Telegram bot."""
        if not self._running:
            return
        self._running = False

        try:
            await self._dp.stop_polling()
        except Exception as e:
            logger.debug(f"Error stopping polling: {e}")

        try:
            await self._bot.session.close()
        except Exception as e:
            logger.debug(f"Error closing bot session: {e}")

        logger.info("telegram_bot_stopped")

    def _setup_handlers(self, commands: WatchCommands) -> None:
        """Register one handler per bot command on the dispatcher."""
        for command_name in commands.names:
            self._dp.message(Command(command_name))(self._make_handler(command_name))

    def _make_handler(self, command_name: str):
        async def handle(message: TelegramMessage, command: CommandObject) -> None:
            reply = await self.handle_command(command_name, message, command.args)
            if reply is None:
                return
            for chunk in split_message(reply):
                await message.answer(chunk)

        return handle
