"""One-response-per-user storage for survey answers."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from redis import Redis
from redis.client import Pipeline

from .errors import ResponseConflictError, ResponseNotFoundError
from .models import SurveyResponse, utcnow
from .storage import RESPONSE_SEQUENCE, responses_key

logger = logging.getLogger(__name__)


class ResponseLedger:
    """Keeps each survey's answers in a hash keyed by user id.

    ``HSETNX`` makes the (survey, user) pair unique at the store level, so a
    concurrent duplicate insert fails with :class:`ResponseConflictError`
    instead of writing a second row.
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    def find(self, survey_id: int, user_id: int) -> Optional[SurveyResponse]:
        raw = self._client.hget(responses_key(survey_id), str(user_id))
        if raw is None:
            return None
        return SurveyResponse.from_json(raw)

    def insert(
        self,
        survey_id: int,
        user_id: int,
        display_name: Optional[str],
        text: str,
    ) -> SurveyResponse:
        response = SurveyResponse(
            id=int(self._client.incr(RESPONSE_SEQUENCE)),
            survey_id=survey_id,
            user_id=user_id,
            display_name=display_name,
            text=text,
            responded_at=utcnow(),
        )
        created = self._client.hsetnx(
            responses_key(survey_id),
            str(user_id),
            response.to_json(),
        )
        if not created:
            raise ResponseConflictError(survey_id, user_id)
        logger.info("Recorded response from user %s for survey %s", user_id, survey_id)
        return response

    def replace(self, survey_id: int, user_id: int, new_text: str) -> SurveyResponse:
        key = responses_key(survey_id)
        field = str(user_id)

        def _apply(pipe: Pipeline) -> SurveyResponse:
            raw = pipe.hget(key, field)
            if raw is None:
                raise ResponseNotFoundError(survey_id, user_id)
            current = SurveyResponse.from_json(raw)
            current.text = new_text
            current.responded_at = utcnow()
            pipe.multi()
            pipe.hset(key, field, current.to_json())
            return current

        updated: SurveyResponse = self._client.transaction(
            _apply, key, value_from_callable=True
        )
        logger.info("Replaced response from user %s for survey %s", user_id, survey_id)
        return updated

    def count_for(self, survey_id: int) -> int:
        return int(self._client.hlen(responses_key(survey_id)))

    def list_for(self, survey_id: int) -> List[SurveyResponse]:
        """Return every response ordered by responded-at, oldest first."""

        responses = [
            SurveyResponse.from_json(raw)
            for raw in self._client.hvals(responses_key(survey_id))
        ]
        responses.sort(key=lambda item: (item.responded_at, item.id))
        return responses

    def latest_activity(self, survey_id: int) -> Optional[datetime]:
        responses = self.list_for(survey_id)
        if not responses:
            return None
        return max(item.responded_at for item in responses)
