"""Durable survey records backed by Redis hashes."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from redis import Redis
from redis.client import Pipeline

from .errors import InvalidSurveyInputError, SurveyNotFoundError, TerminalStateError
from .models import Survey, SurveyStatus, utcnow
from .storage import (
    ACTIVE_SURVEYS,
    SURVEY_SEQUENCE,
    chat_active_key,
    responses_key,
    survey_key,
)

logger = logging.getLogger(__name__)


def parse_expected_count(raw: object) -> int:
    """Validate a user-supplied response quota.

    Accepts integers and numeric strings; zero, negative, fractional and
    non-numeric values are rejected with :class:`InvalidSurveyInputError`.
    """

    if isinstance(raw, bool):
        raise InvalidSurveyInputError(f"Invalid expected response count: {raw!r}")
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw or "").strip()
        try:
            value = int(text)
        except ValueError as exc:
            raise InvalidSurveyInputError(
                f"Expected response count must be a whole number, got {text!r}"
            ) from exc
    if value < 1:
        raise InvalidSurveyInputError(
            f"Expected response count must be at least 1, got {value}"
        )
    return value


class SurveyStore:
    """Creates surveys and guards their status transitions.

    Every status change is a compare-and-swap on the survey hash: the write
    only lands while the stored status is still ``ACTIVE``. Callers use the
    boolean result to decide whether they own the transition. The same
    transaction drops the survey from the active indexes, so lookups never
    scan finished surveys.
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    def create(self, chat_id: int, question: str, expected_count: int) -> Survey:
        normalized = (question or "").strip()
        if not normalized:
            raise InvalidSurveyInputError("Survey question must not be empty.")
        if isinstance(expected_count, bool) or not isinstance(expected_count, int):
            raise InvalidSurveyInputError(
                f"Expected response count must be an integer, got {expected_count!r}"
            )
        if expected_count < 1:
            raise InvalidSurveyInputError(
                f"Expected response count must be at least 1, got {expected_count}"
            )

        survey_id = int(self._client.incr(SURVEY_SEQUENCE))
        survey = Survey(
            id=survey_id,
            chat_id=int(chat_id),
            question=normalized,
            expected_count=expected_count,
            status=SurveyStatus.ACTIVE,
            created_at=utcnow(),
        )
        pipe = self._client.pipeline(transaction=True)
        pipe.hset(survey_key(survey_id), mapping=survey.to_redis())
        pipe.zadd(chat_active_key(survey.chat_id), {str(survey_id): survey_id})
        pipe.zadd(ACTIVE_SURVEYS, {str(survey_id): survey_id})
        pipe.execute()
        logger.info(
            "Created survey %s for chat %s expecting %s responses",
            survey_id,
            survey.chat_id,
            expected_count,
        )
        return survey

    def get_by_id(self, survey_id: int) -> Survey:
        payload = self._client.hgetall(survey_key(survey_id))
        if not payload:
            raise SurveyNotFoundError(survey_id)
        return Survey.from_redis(payload)

    def get_active(self, chat_id: int) -> Optional[Survey]:
        """Return the most recently created ACTIVE survey for ``chat_id``."""

        surveys = self.list_active_in_chat(chat_id)
        return surveys[-1] if surveys else None

    def list_active_in_chat(self, chat_id: int) -> List[Survey]:
        """ACTIVE surveys of ``chat_id``, oldest first."""

        return self._load_active(self._client.zrange(chat_active_key(chat_id), 0, -1))

    def list_active(self) -> List[Survey]:
        return self._load_active(self._client.zrange(ACTIVE_SURVEYS, 0, -1))

    def count_responses(self, survey_id: int) -> int:
        return int(self._client.hlen(responses_key(survey_id)))

    def try_complete(self, survey_id: int) -> bool:
        """Move ``survey_id`` from ACTIVE to COMPLETED.

        Returns ``True`` for exactly one caller per survey; everyone else
        observes the updated status and gets ``False``.
        """

        return self._transition(
            survey_id,
            SurveyStatus.COMPLETED,
            {"completed_at": utcnow().isoformat()},
        )

    def mark_completed(self, survey_id: int, summary: str) -> bool:
        """Attach the final summary, completing the survey if still active.

        Returns whether this call performed the ACTIVE to COMPLETED step.
        """

        key = survey_key(survey_id)

        def _apply(pipe: Pipeline) -> bool:
            status, chat_id = pipe.hmget(key, ["status", "chat_id"])
            if status is None:
                raise SurveyNotFoundError(survey_id)
            if status == SurveyStatus.CANCELLED.value:
                raise TerminalStateError(survey_id, status)
            fields: Dict[str, str] = {
                "status": SurveyStatus.COMPLETED.value,
                "summary": summary,
            }
            transitioned = status == SurveyStatus.ACTIVE.value
            if transitioned:
                fields["completed_at"] = utcnow().isoformat()
            pipe.multi()
            pipe.hset(key, mapping=fields)
            if transitioned:
                _drop_from_active(pipe, survey_id, int(chat_id))
            return transitioned

        transitioned = self._client.transaction(
            _apply, key, value_from_callable=True
        )
        logger.info("Survey %s marked as completed", survey_id)
        return bool(transitioned)

    def mark_cancelled(self, survey_id: int) -> bool:
        return self._transition(survey_id, SurveyStatus.CANCELLED)

    def _load_active(self, survey_ids: List[str]) -> List[Survey]:
        if not survey_ids:
            return []
        pipe = self._client.pipeline(transaction=False)
        for survey_id in survey_ids:
            pipe.hgetall(survey_key(int(survey_id)))
        return [
            Survey.from_redis(payload)
            for payload in pipe.execute()
            if payload and payload.get("status") == SurveyStatus.ACTIVE.value
        ]

    def _transition(
        self,
        survey_id: int,
        target: SurveyStatus,
        fields: Optional[Dict[str, str]] = None,
    ) -> bool:
        key = survey_key(survey_id)

        def _apply(pipe: Pipeline) -> bool:
            status, chat_id = pipe.hmget(key, ["status", "chat_id"])
            if status is None:
                raise SurveyNotFoundError(survey_id)
            if status != SurveyStatus.ACTIVE.value:
                return False
            pipe.multi()
            pipe.hset(key, mapping={"status": target.value, **(fields or {})})
            _drop_from_active(pipe, survey_id, int(chat_id))
            return True

        won = bool(
            self._client.transaction(_apply, key, value_from_callable=True)
        )
        if won:
            logger.info("Survey %s moved to %s", survey_id, target.value)
        else:
            logger.debug(
                "Survey %s already left ACTIVE; %s transition skipped",
                survey_id,
                target.value,
            )
        return won


def _drop_from_active(pipe: Pipeline, survey_id: int, chat_id: int) -> None:
    pipe.zrem(ACTIVE_SURVEYS, str(survey_id))
    pipe.zrem(chat_active_key(chat_id), str(survey_id))
