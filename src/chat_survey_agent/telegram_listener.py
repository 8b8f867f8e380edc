"""Telegram long-polling adapter feeding chat messages into the lifecycle."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from aiogram import Dispatcher, F, Router
from aiogram.types import Message

from .lifecycle import MessageResult, SurveyLifecycle
from .notifier import TelegramNotifier
from .runtime import SurveyRuntime

logger = logging.getLogger(__name__)


async def handle_text_message(
    lifecycle: SurveyLifecycle,
    message: Message,
) -> Optional[MessageResult]:
    """Translate one Telegram message into an inbound survey event."""

    sender = message.from_user
    text = message.text
    if sender is None or not text:
        return None
    if text.startswith("/"):
        logger.debug("Skipping bot command %r in chat %s", text, message.chat.id)
        return None
    try:
        result = await lifecycle.on_message(
            message.chat.id,
            sender.id,
            sender.first_name,
            text,
        )
    except Exception:
        logger.exception(
            "Error processing message %s in chat %s",
            message.message_id,
            message.chat.id,
        )
        return None
    logger.info(
        "Chat: %s | User: %s (%s) | outcome=%s",
        message.chat.id,
        sender.id,
        sender.first_name,
        result.outcome.value,
    )
    return result


def build_router(lifecycle: SurveyLifecycle) -> Router:
    router = Router(name="surveys")

    @router.message(F.text)
    async def _on_text(message: Message) -> None:
        await handle_text_message(lifecycle, message)

    return router


async def run_bot(runtime: SurveyRuntime) -> None:
    """Poll Telegram for messages while the watchdog sweeps in the background."""

    notifier = runtime.notifier
    if not isinstance(notifier, TelegramNotifier):
        raise RuntimeError("SURVEY_TELEGRAM_BOT_TOKEN is required to run the bot.")

    dispatcher = Dispatcher()
    dispatcher.include_router(build_router(runtime.lifecycle))
    stop_event = asyncio.Event()
    watchdog_task = asyncio.create_task(runtime.watchdog.run(stop_event))
    logger.info("Telegram bot listener started")
    try:
        await dispatcher.start_polling(notifier.bot)
    finally:
        stop_event.set()
        await watchdog_task
        await notifier.close()
