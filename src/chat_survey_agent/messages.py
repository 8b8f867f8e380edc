"""Chat-facing message templates for the survey workflow."""

from __future__ import annotations

from typing import Sequence

from .models import PendingChange, Survey, SurveyResponse

AFFIRMATIVE_REPLIES = frozenset({"yes", "y"})
NEGATIVE_REPLIES = frozenset({"no", "n"})
CONFIRMATION_REPLIES = AFFIRMATIVE_REPLIES | NEGATIVE_REPLIES

CANCELLATION_HEADLINES = {
    "timeout": "Survey Timed Out",
    "superseded": "Survey Replaced",
}
DEFAULT_CANCELLATION_HEADLINE = "Survey Cancelled"


def survey_announcement(survey: Survey) -> str:
    return (
        "📊 New Survey!\n\n"
        f"Question: {survey.question}\n\n"
        "Please reply with your answer. Survey completes after "
        f"{survey.expected_count} responses."
    )


def change_confirmation_prompt(change: PendingChange) -> str:
    return (
        f'{change.author} has already submitted a response: "{change.old_text}"\n\n'
        f'Would you like to change your answer to: "{change.new_text}"?\n\n'
        'Reply with "yes" to change your answer or "no" to keep your original answer.'
    )


def change_applied(change: PendingChange) -> str:
    return f'✅ {change.author}, your answer has been updated to: "{change.new_text}"'


def change_rejected(change: PendingChange) -> str:
    return f'✅ {change.author}, your original answer has been kept: "{change.old_text}"'


def response_listing(responses: Sequence[SurveyResponse]) -> str:
    if not responses:
        return "No responses were received."
    lines = ["Responses received:"]
    for index, response in enumerate(responses, start=1):
        lines.append(f"{index}. {response.author}: {response.text}")
    return "\n".join(lines)


def survey_results(survey: Survey, summary: str) -> str:
    return f"📊 Survey Results\n\nQuestion: {survey.question}\n\n{summary}"


def survey_cancelled(
    survey: Survey,
    responses: Sequence[SurveyResponse],
    reason: str,
) -> str:
    headline = CANCELLATION_HEADLINES.get(reason, DEFAULT_CANCELLATION_HEADLINE)
    return (
        f"❌ {headline}: {len(responses)} out of {survey.expected_count} "
        "responses collected.\n\n"
        f"Question: {survey.question}\n\n"
        f"{response_listing(responses)}"
    )
