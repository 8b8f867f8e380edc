from __future__ import annotations

import asyncio
from datetime import timedelta

from chat_survey_agent.lifecycle import SurveyLifecycle
from chat_survey_agent.models import SurveyStatus
from chat_survey_agent.response_ledger import ResponseLedger
from chat_survey_agent.survey_store import SurveyStore
from chat_survey_agent.watchdog import SurveyWatchdog

from conftest import CHAT_ID, RecordingNotifier


async def test_sweep_cancels_inactive_surveys(
    lifecycle: SurveyLifecycle,
    surveys: SurveyStore,
    notifier: RecordingNotifier,
) -> None:
    survey = surveys.create(CHAT_ID, "Favourite colour?", 2)
    watchdog = SurveyWatchdog(lifecycle, timeout=timedelta(minutes=30))

    report = await watchdog.sweep(now=survey.created_at + timedelta(minutes=31))

    assert report.cancelled == [survey.id]
    assert surveys.get_by_id(survey.id).status is SurveyStatus.CANCELLED
    assert notifier.texts()[-1].startswith("❌ Survey Timed Out")


async def test_recent_answers_keep_survey_alive(
    lifecycle: SurveyLifecycle,
    surveys: SurveyStore,
    ledger: ResponseLedger,
) -> None:
    survey = surveys.create(CHAT_ID, "Favourite colour?", 2)
    answer = ledger.insert(survey.id, 1, "A", "blue")
    watchdog = SurveyWatchdog(lifecycle, timeout=timedelta(minutes=30))

    report = await watchdog.sweep(now=answer.responded_at + timedelta(minutes=10))

    assert report.still_active == [survey.id]
    assert surveys.get_by_id(survey.id).status is SurveyStatus.ACTIVE


async def test_sweep_completes_surveys_that_missed_their_trigger(
    lifecycle: SurveyLifecycle,
    surveys: SurveyStore,
    ledger: ResponseLedger,
) -> None:
    survey = surveys.create(CHAT_ID, "Favourite colour?", 1)
    ledger.insert(survey.id, 1, "A", "blue")
    watchdog = SurveyWatchdog(lifecycle, timeout=timedelta(hours=1))

    report = await watchdog.sweep()

    assert report.completed == [survey.id]
    assert surveys.get_by_id(survey.id).status is SurveyStatus.COMPLETED


async def test_run_stops_when_event_is_set(lifecycle: SurveyLifecycle) -> None:
    watchdog = SurveyWatchdog(
        lifecycle,
        timeout=timedelta(hours=1),
        interval_seconds=0.01,
    )
    stop_event = asyncio.Event()
    task = asyncio.create_task(watchdog.run(stop_event))
    await asyncio.sleep(0.05)
    stop_event.set()

    await asyncio.wait_for(task, timeout=1)

    assert task.done()


async def test_met_quota_completes_instead_of_timing_out(
    lifecycle: SurveyLifecycle,
    surveys: SurveyStore,
    ledger: ResponseLedger,
    notifier: RecordingNotifier,
) -> None:
    survey = surveys.create(CHAT_ID, "Favourite colour?", 1)
    answer = ledger.insert(survey.id, 1, "A", "blue")
    watchdog = SurveyWatchdog(lifecycle, timeout=timedelta(hours=1))

    report = await watchdog.sweep(now=answer.responded_at + timedelta(hours=2))

    assert report.completed == [survey.id]
    assert report.cancelled == []
    assert surveys.get_by_id(survey.id).status is SurveyStatus.COMPLETED
    assert notifier.texts()[-1].startswith("📊 Survey Results")
