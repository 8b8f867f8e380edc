"""Natural-language survey requests turned into validated parameters."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from .errors import InvalidSurveyInputError
from .maf_client import MAFChatClient
from .survey_store import parse_expected_count

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = "You extract structured survey parameters from requests."

EXTRACTION_PROMPT = """
Parse this survey request and extract the parameters in this exact format:
chatId: <number>
question: <the question>
expectedCount: <number>

User request: {request}

Examples:
- "Ask user 8360446449 what their favourite colour is"
  -> chatId: 8360446449
  -> question: What is your favourite colour?
  -> expectedCount: 1

- "Ask 5 users in group -123456 what their favorite food is"
  -> chatId: -123456
  -> question: What is your favorite food?
  -> expectedCount: 5

If the user mentions asking ONE person or ONE user, set expectedCount to 1.
If they mention a specific number, use that number.

Respond with ONLY the three lines in the format shown above, nothing else.
""".strip()

_FIELDS = ("chatId", "question", "expectedCount")


@dataclass(frozen=True, slots=True)
class SurveyRequest:
    """Structured arguments for starting a survey."""

    chat_id: int
    question: str
    expected_count: int


def parse_survey_request(raw: str) -> SurveyRequest:
    """Parse ``chatId``/``question``/``expectedCount`` lines.

    Lines may carry list markers or arrows ahead of the field name; unknown
    lines are ignored. Missing or invalid fields raise
    :class:`InvalidSurveyInputError`.
    """

    fields: Dict[str, str] = {}
    for line in raw.splitlines():
        cleaned = line.strip().lstrip("-*>→ ").strip()
        name, separator, value = cleaned.partition(":")
        if not separator:
            continue
        name = name.strip()
        if name in _FIELDS and name not in fields:
            fields[name] = value.strip()

    missing = [name for name in _FIELDS if not fields.get(name)]
    if missing:
        raise InvalidSurveyInputError(
            f"Could not extract {', '.join(missing)} from: {raw!r}"
        )

    try:
        chat_id = int(fields["chatId"])
    except ValueError as exc:
        raise InvalidSurveyInputError(
            f"Chat id must be an integer, got {fields['chatId']!r}"
        ) from exc

    question = fields["question"].strip().strip('"').strip()
    if not question:
        raise InvalidSurveyInputError("Survey question must not be empty.")

    return SurveyRequest(
        chat_id=chat_id,
        question=question,
        expected_count=parse_expected_count(fields["expectedCount"]),
    )


class SurveyRequestParser:
    """Uses the chat model to pull survey parameters out of free text."""

    def __init__(self, chat_client: MAFChatClient) -> None:
        self._chat_client = chat_client

    async def parse(self, request_text: str) -> SurveyRequest:
        request_text = request_text.strip()
        if not request_text:
            raise InvalidSurveyInputError("Survey request must not be empty.")
        extracted = await self._chat_client.ask(
            EXTRACTION_PROMPT.format(request=request_text),
            system=EXTRACTION_SYSTEM_PROMPT,
        )
        logger.info("Extracted survey parameters: %s", extracted)
        return parse_survey_request(extracted)
