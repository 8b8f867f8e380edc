from __future__ import annotations

from datetime import datetime, timezone

from chat_survey_agent.models import SurveyResponse
from chat_survey_agent.summarizer import LLMResultsSummarizer, ListingSummarizer

from conftest import FakeChatClient


def _response(user_id: int, name: str | None, text: str) -> SurveyResponse:
    return SurveyResponse(
        id=user_id,
        survey_id=1,
        user_id=user_id,
        display_name=name,
        text=text,
        responded_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


async def test_listing_summarizer_numbers_responses() -> None:
    summary = await ListingSummarizer().summarize(
        "Colour?",
        [_response(1, "Ada", "blue"), _response(2, None, "green")],
    )

    assert summary == "Responses received:\n1. Ada: blue\n2. User 2: green"


async def test_listing_summarizer_without_responses() -> None:
    assert await ListingSummarizer().summarize("Colour?", []) == "No responses were received."


async def test_llm_summarizer_includes_question_and_answers() -> None:
    client = FakeChatClient("Blue is the favourite.")
    summarizer = LLMResultsSummarizer(client)  # type: ignore[arg-type]

    summary = await summarizer.summarize(
        "Favourite colour?",
        [_response(1, "Ada", "blue"), _response(2, None, "blue")],
    )

    assert summary == "Blue is the favourite."
    prompt = client.prompts[0]
    assert "Question: Favourite colour?" in prompt
    assert "- Ada: blue" in prompt
    assert "- User 2: blue" in prompt


async def test_llm_summarizer_empty_reply_falls_back() -> None:
    summarizer = LLMResultsSummarizer(FakeChatClient(""))  # type: ignore[arg-type]

    summary = await summarizer.summarize("Colour?", [_response(1, "Ada", "blue")])

    assert summary == "Responses received:\n1. Ada: blue"
