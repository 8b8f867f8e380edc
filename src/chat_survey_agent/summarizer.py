"""Turn a finished survey's answers into a short human-readable summary."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from .maf_client import MAFChatClient
from .messages import response_listing
from .models import SurveyResponse

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = "You analyse chat survey answers and reply with plain text."

ANALYSIS_PROMPT = """
Analyze the following survey results and provide intelligent insights based on the question asked.

Question: {question}

Responses:
{responses}

Your task:
1. Analyze the responses in relation to the question
2. Process the data to extract meaningful insights
3. If the question is about availability or unavailability (e.g., "When is everyone unavailable in January"), find the dates when everyone IS available
4. If the question is about preferences (e.g., favorite colors, food), summarize patterns or commonalities
5. If the question requires aggregation or comparison, perform that analysis
6. Provide a clear, concise summary that directly answers the underlying question

Format your response as a natural summary that provides actionable information, not just a list of responses. It should be concise and precise, as it is a text message (<50 words). No markup should be used.

Examples:
- For availability questions: "Based on everyone's unavailability, the following dates work for everyone: January 5th, 12th, and 20th"
- For preference questions: "The most popular color is blue (3 people), followed by green (2 people)"
- For opinion questions: "Most people agree that... while some mentioned..."
""".strip()


class ResultsSummarizer(Protocol):
    """Produces summary text for a completed survey."""

    async def summarize(
        self,
        question: str,
        responses: Sequence[SurveyResponse],
    ) -> str:
        ...


class ListingSummarizer:
    """Numbered list of answers; used without a model and as a fallback."""

    async def summarize(
        self,
        question: str,
        responses: Sequence[SurveyResponse],
    ) -> str:
        return response_listing(responses)


class LLMResultsSummarizer:
    """Asks the configured chat model to analyse the collected answers."""

    def __init__(self, chat_client: MAFChatClient) -> None:
        self._chat_client = chat_client

    def build_prompt(
        self,
        question: str,
        responses: Sequence[SurveyResponse],
    ) -> str:
        lines = "\n".join(
            f"- {response.author}: {response.text}" for response in responses
        )
        return ANALYSIS_PROMPT.format(question=question, responses=lines)

    async def summarize(
        self,
        question: str,
        responses: Sequence[SurveyResponse],
    ) -> str:
        prompt = self.build_prompt(question, responses)
        analysis = await self._chat_client.ask(
            prompt,
            system=ANALYSIS_SYSTEM_PROMPT,
        )
        if not analysis:
            logger.warning("Model returned an empty analysis; listing responses instead")
            return response_listing(responses)
        return analysis
