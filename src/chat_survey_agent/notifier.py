"""Outbound chat delivery for survey prompts and announcements."""

from __future__ import annotations

import logging
from typing import List, Protocol, Tuple

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError

logger = logging.getLogger(__name__)


class OutboundNotifier(Protocol):
    """Delivers text to a chat; ``False`` signals a failed delivery."""

    async def send(self, chat_id: int, text: str) -> bool:
        ...


class TelegramNotifier:
    """Sends messages through the Telegram Bot API."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    @classmethod
    def from_token(cls, token: str) -> "TelegramNotifier":
        return cls(Bot(token=token))

    @property
    def bot(self) -> Bot:
        return self._bot

    async def send(self, chat_id: int, text: str) -> bool:
        try:
            await self._bot.send_message(chat_id=chat_id, text=text)
        except TelegramAPIError as exc:
            logger.error("Telegram delivery to chat %s failed: %s", chat_id, exc)
            return False
        logger.debug("Delivered message to chat %s", chat_id)
        return True

    async def close(self) -> None:
        await self._bot.session.close()


class LoggingNotifier:
    """Writes outbound messages to the log; for runs without a bot token."""

    def __init__(self) -> None:
        self.sent: List[Tuple[int, str]] = []

    async def send(self, chat_id: int, text: str) -> bool:
        self.sent.append((chat_id, text))
        logger.info("Message for chat %s:\n%s", chat_id, text)
        return True
