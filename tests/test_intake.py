from __future__ import annotations

import pytest

from chat_survey_agent.errors import InvalidSurveyInputError
from chat_survey_agent.intake import SurveyRequest, SurveyRequestParser, parse_survey_request

from conftest import FakeChatClient


def test_parse_plain_lines() -> None:
    raw = "chatId: -123456\nquestion: What is your favorite food?\nexpectedCount: 5"

    assert parse_survey_request(raw) == SurveyRequest(
        chat_id=-123456,
        question="What is your favorite food?",
        expected_count=5,
    )


def test_parse_tolerates_arrows_and_noise() -> None:
    raw = (
        "Sure, here you go:\n"
        "-> chatId: 8360446449\n"
        '-> question: "What is your favourite colour?"\n'
        "-> expectedCount: 1\n"
    )

    request = parse_survey_request(raw)

    assert request.chat_id == 8360446449
    assert request.question == "What is your favourite colour?"
    assert request.expected_count == 1


def test_parse_keeps_colons_inside_question() -> None:
    raw = "chatId: 1\nquestion: Rate it: good or bad?\nexpectedCount: 2"

    assert parse_survey_request(raw).question == "Rate it: good or bad?"


@pytest.mark.parametrize(
    "raw",
    [
        "question: Why?\nexpectedCount: 2",
        "chatId: 1\nexpectedCount: 2",
        "chatId: 1\nquestion: Why?",
        "chatId: abc\nquestion: Why?\nexpectedCount: 2",
        "chatId: 1\nquestion: Why?\nexpectedCount: 0",
        "chatId: 1\nquestion: Why?\nexpectedCount: everyone",
        'chatId: 1\nquestion: ""\nexpectedCount: 2',
    ],
)
def test_parse_rejects_incomplete_or_invalid(raw: str) -> None:
    with pytest.raises(InvalidSurveyInputError):
        parse_survey_request(raw)


async def test_parser_sends_request_to_model() -> None:
    client = FakeChatClient("chatId: -789\nquestion: What is your favorite food?\nexpectedCount: 10")
    parser = SurveyRequestParser(client)  # type: ignore[arg-type]

    request = await parser.parse("ask 10 people in chat -789 what their favorite food is")

    assert request == SurveyRequest(-789, "What is your favorite food?", 10)
    assert "ask 10 people in chat -789" in client.prompts[0]


async def test_parser_rejects_blank_request() -> None:
    parser = SurveyRequestParser(FakeChatClient(""))  # type: ignore[arg-type]

    with pytest.raises(InvalidSurveyInputError):
        await parser.parse("   ")
