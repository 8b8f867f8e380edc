"""Wiring of stores, collaborators, and the lifecycle from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from redis import Redis

from .config import AppSettings
from .intake import SurveyRequestParser
from .lifecycle import SurveyLifecycle
from .maf_client import MAFChatClient
from .notifier import LoggingNotifier, OutboundNotifier, TelegramNotifier
from .pending_changes import PendingChangeArbiter
from .response_ledger import ResponseLedger
from .storage import connect_redis
from .summarizer import ListingSummarizer, LLMResultsSummarizer, ResultsSummarizer
from .survey_store import SurveyStore
from .watchdog import SurveyWatchdog

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SurveyRuntime:
    """Everything a front end (HTTP, bot, CLI) needs to drive surveys."""

    settings: AppSettings
    lifecycle: SurveyLifecycle
    watchdog: SurveyWatchdog
    notifier: OutboundNotifier
    request_parser: Optional[SurveyRequestParser] = None


def build_runtime(
    settings: AppSettings,
    *,
    client: Optional[Redis] = None,
    notifier: Optional[OutboundNotifier] = None,
    chat_client: Optional[MAFChatClient] = None,
) -> SurveyRuntime:
    client = client if client is not None else connect_redis(settings.redis_url)

    if notifier is None:
        if settings.telegram_bot_token:
            notifier = TelegramNotifier.from_token(settings.telegram_bot_token)
        else:
            logger.warning(
                "SURVEY_TELEGRAM_BOT_TOKEN is not set; outbound messages go to the log"
            )
            notifier = LoggingNotifier()

    if chat_client is None and settings.model is not None:
        chat_client = MAFChatClient(settings.model)

    summarizer: ResultsSummarizer
    request_parser: Optional[SurveyRequestParser] = None
    if chat_client is not None:
        summarizer = LLMResultsSummarizer(chat_client)
        request_parser = SurveyRequestParser(chat_client)
    else:
        logger.info("No chat model configured; results are published as listings")
        summarizer = ListingSummarizer()

    lifecycle = SurveyLifecycle(
        surveys=SurveyStore(client),
        ledger=ResponseLedger(client),
        arbiter=PendingChangeArbiter(
            client,
            replay_window_seconds=settings.confirmation_replay_seconds,
        ),
        notifier=notifier,
        summarizer=summarizer,
    )
    watchdog = SurveyWatchdog(
        lifecycle,
        timeout=timedelta(seconds=settings.survey_timeout_seconds),
        interval_seconds=settings.sweep_interval_seconds,
    )
    return SurveyRuntime(
        settings=settings,
        lifecycle=lifecycle,
        watchdog=watchdog,
        notifier=notifier,
        request_parser=request_parser,
    )
