"""Shared fixtures: an in-memory Redis and recording collaborators."""

from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence, Tuple

import fakeredis
import pytest

from chat_survey_agent.lifecycle import SurveyLifecycle
from chat_survey_agent.models import SurveyResponse
from chat_survey_agent.pending_changes import PendingChangeArbiter
from chat_survey_agent.response_ledger import ResponseLedger
from chat_survey_agent.survey_store import SurveyStore

CHAT_ID = -100123


class RecordingNotifier:
    def __init__(self, *, fail: bool = False, raise_error: bool = False) -> None:
        self.sent: List[Tuple[int, str]] = []
        self._fail = fail
        self._raise_error = raise_error

    async def send(self, chat_id: int, text: str) -> bool:
        if self._raise_error:
            raise ConnectionError("chat transport unavailable")
        self.sent.append((chat_id, text))
        return not self._fail

    def texts(self) -> List[str]:
        return [text for _, text in self.sent]


class RecordingSummarizer:
    def __init__(self, reply: str = "Everyone answered.", *, error: Optional[Exception] = None) -> None:
        self.calls: List[Tuple[str, List[Tuple[Optional[str], str]]]] = []
        self._reply = reply
        self._error = error

    async def summarize(self, question: str, responses: Sequence[SurveyResponse]) -> str:
        self.calls.append(
            (question, [(item.display_name, item.text) for item in responses])
        )
        await asyncio.sleep(0)
        if self._error is not None:
            raise self._error
        return self._reply


class FakeChatClient:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.prompts: List[str] = []

    async def ask(self, prompt: str, *, system: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        return self.reply


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(redis_server: fakeredis.FakeServer) -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(server=redis_server, decode_responses=True)


@pytest.fixture
def surveys(redis_client: fakeredis.FakeRedis) -> SurveyStore:
    return SurveyStore(redis_client)


@pytest.fixture
def ledger(redis_client: fakeredis.FakeRedis) -> ResponseLedger:
    return ResponseLedger(redis_client)


@pytest.fixture
def arbiter(redis_client: fakeredis.FakeRedis) -> PendingChangeArbiter:
    return PendingChangeArbiter(redis_client, replay_window_seconds=60)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def summarizer() -> RecordingSummarizer:
    return RecordingSummarizer()


@pytest.fixture
def lifecycle(
    surveys: SurveyStore,
    ledger: ResponseLedger,
    arbiter: PendingChangeArbiter,
    notifier: RecordingNotifier,
    summarizer: RecordingSummarizer,
) -> SurveyLifecycle:
    return SurveyLifecycle(
        surveys=surveys,
        ledger=ledger,
        arbiter=arbiter,
        notifier=notifier,
        summarizer=summarizer,
    )
