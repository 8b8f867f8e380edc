from __future__ import annotations

import threading

import fakeredis
import pytest

from chat_survey_agent.errors import (
    InvalidSurveyInputError,
    SurveyNotFoundError,
    TerminalStateError,
)
from chat_survey_agent.models import SurveyStatus
from chat_survey_agent.survey_store import SurveyStore, parse_expected_count

from conftest import CHAT_ID


def test_create_persists_active_survey(surveys: SurveyStore) -> None:
    survey = surveys.create(CHAT_ID, "  Favourite colour?  ", 3)

    stored = surveys.get_by_id(survey.id)
    assert stored.question == "Favourite colour?"
    assert stored.status is SurveyStatus.ACTIVE
    assert stored.expected_count == 3
    assert stored.chat_id == CHAT_ID
    assert stored.completed_at is None
    assert stored.summary is None


@pytest.mark.parametrize("expected_count", [0, -2, True, "3", 1.5])
def test_create_rejects_invalid_expected_count(
    surveys: SurveyStore,
    redis_client: fakeredis.FakeRedis,
    expected_count: object,
) -> None:
    with pytest.raises(InvalidSurveyInputError):
        surveys.create(CHAT_ID, "Question?", expected_count)  # type: ignore[arg-type]
    assert surveys.get_active(CHAT_ID) is None
    assert redis_client.get("survey:seq") is None


def test_create_rejects_blank_question(surveys: SurveyStore) -> None:
    with pytest.raises(InvalidSurveyInputError):
        surveys.create(CHAT_ID, "   ", 2)


def test_get_by_id_unknown_survey(surveys: SurveyStore) -> None:
    with pytest.raises(SurveyNotFoundError):
        surveys.get_by_id(404)


def test_get_active_returns_latest_active_survey(surveys: SurveyStore) -> None:
    first = surveys.create(CHAT_ID, "First?", 1)
    second = surveys.create(CHAT_ID, "Second?", 1)
    surveys.create(CHAT_ID + 1, "Other chat?", 1)

    assert surveys.get_active(CHAT_ID).id == second.id

    surveys.mark_cancelled(second.id)
    assert surveys.get_active(CHAT_ID).id == first.id

    surveys.try_complete(first.id)
    assert surveys.get_active(CHAT_ID) is None


def test_list_active_skips_finished_surveys(surveys: SurveyStore) -> None:
    done = surveys.create(CHAT_ID, "Done?", 1)
    open_survey = surveys.create(CHAT_ID + 5, "Open?", 1)
    surveys.mark_cancelled(done.id)

    assert [survey.id for survey in surveys.list_active()] == [open_survey.id]


def test_finished_surveys_leave_the_active_indexes(
    surveys: SurveyStore,
    redis_client: fakeredis.FakeRedis,
) -> None:
    cancelled = surveys.create(CHAT_ID, "Cancelled?", 1)
    completed = surveys.create(CHAT_ID, "Completed?", 1)
    summarized = surveys.create(CHAT_ID, "Summarized?", 1)
    open_survey = surveys.create(CHAT_ID, "Open?", 1)
    elsewhere = surveys.create(CHAT_ID + 1, "Elsewhere?", 1)

    surveys.mark_cancelled(cancelled.id)
    surveys.try_complete(completed.id)
    surveys.mark_completed(summarized.id, "Done")

    assert redis_client.zrange(f"chat:{CHAT_ID}:active", 0, -1) == [str(open_survey.id)]
    assert redis_client.zrange("surveys:active", 0, -1) == [
        str(open_survey.id),
        str(elsewhere.id),
    ]
    assert [survey.id for survey in surveys.list_active_in_chat(CHAT_ID)] == [open_survey.id]
    assert surveys.get_active(CHAT_ID + 1).id == elsewhere.id


def test_try_complete_succeeds_once(surveys: SurveyStore) -> None:
    survey = surveys.create(CHAT_ID, "Question?", 1)

    assert surveys.try_complete(survey.id) is True
    assert surveys.try_complete(survey.id) is False

    stored = surveys.get_by_id(survey.id)
    assert stored.status is SurveyStatus.COMPLETED
    assert stored.completed_at is not None


def test_terminal_states_never_reopen(surveys: SurveyStore) -> None:
    survey = surveys.create(CHAT_ID, "Question?", 1)

    assert surveys.mark_cancelled(survey.id) is True
    assert surveys.mark_cancelled(survey.id) is False
    assert surveys.try_complete(survey.id) is False
    with pytest.raises(TerminalStateError):
        surveys.mark_completed(survey.id, "summary")
    assert surveys.get_by_id(survey.id).status is SurveyStatus.CANCELLED


def test_mark_completed_records_summary(surveys: SurveyStore) -> None:
    survey = surveys.create(CHAT_ID, "Question?", 1)
    assert surveys.try_complete(survey.id) is True

    assert surveys.mark_completed(survey.id, "Blue wins") is False

    stored = surveys.get_by_id(survey.id)
    assert stored.status is SurveyStatus.COMPLETED
    assert stored.summary == "Blue wins"


def test_mark_completed_transitions_active_survey(surveys: SurveyStore) -> None:
    survey = surveys.create(CHAT_ID, "Question?", 1)

    assert surveys.mark_completed(survey.id, "Done") is True
    assert surveys.get_by_id(survey.id).completed_at is not None


def test_transition_unknown_survey(surveys: SurveyStore) -> None:
    with pytest.raises(SurveyNotFoundError):
        surveys.mark_cancelled(99)


def test_concurrent_completion_has_single_winner(
    redis_server: fakeredis.FakeServer,
) -> None:
    store = SurveyStore(fakeredis.FakeRedis(server=redis_server, decode_responses=True))
    survey = store.create(CHAT_ID, "Question?", 1)
    workers = 8
    barrier = threading.Barrier(workers)
    results: list[bool] = []
    lock = threading.Lock()

    def _attempt() -> None:
        client = fakeredis.FakeRedis(server=redis_server, decode_responses=True)
        barrier.wait()
        won = SurveyStore(client).try_complete(survey.id)
        with lock:
            results.append(won)

    threads = [threading.Thread(target=_attempt) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    assert store.get_by_id(survey.id).status is SurveyStatus.COMPLETED


@pytest.mark.parametrize("raw, expected", [("3", 3), (" 12 ", 12), (7, 7)])
def test_parse_expected_count_accepts_positive_numbers(raw: object, expected: int) -> None:
    assert parse_expected_count(raw) == expected


@pytest.mark.parametrize("raw", ["0", "-1", "two", "", "2.5", None, False])
def test_parse_expected_count_rejects_invalid_text(raw: object) -> None:
    with pytest.raises(InvalidSurveyInputError):
        parse_expected_count(raw)
