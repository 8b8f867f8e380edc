"""Outstanding "change your answer?" confirmations, one per chat member."""

from __future__ import annotations

import logging
from typing import List, Optional

from redis import Redis
from redis.client import Pipeline

from .models import PendingChange, utcnow
from .storage import (
    PENDING_SEQUENCE,
    pending_key,
    resolved_marker_key,
    survey_pending_key,
)

logger = logging.getLogger(__name__)

DEFAULT_REPLAY_WINDOW_SECONDS = 300


class PendingChangeArbiter:
    """Stores at most one pending change per (chat, user) pair.

    The pair maps to a single key, so proposing overwrites any earlier
    proposal and resolving is an atomic fetch-and-delete. Resolution leaves a
    short-lived marker naming the survey the change belonged to, which lets
    the lifecycle recognise a re-delivered yes/no reply. Each survey also
    tracks which members have a proposal open so a finished survey can clear
    them.
    """

    def __init__(
        self,
        client: Redis,
        *,
        replay_window_seconds: int = DEFAULT_REPLAY_WINDOW_SECONDS,
    ) -> None:
        self._client = client
        self._replay_window_seconds = replay_window_seconds

    def get(self, chat_id: int, user_id: int) -> Optional[PendingChange]:
        raw = self._client.get(pending_key(chat_id, user_id))
        if raw is None:
            return None
        return PendingChange.from_json(raw)

    def propose(
        self,
        survey_id: int,
        chat_id: int,
        user_id: int,
        display_name: Optional[str],
        old_text: str,
        new_text: str,
    ) -> PendingChange:
        change = PendingChange(
            id=int(self._client.incr(PENDING_SEQUENCE)),
            survey_id=survey_id,
            chat_id=chat_id,
            user_id=user_id,
            display_name=display_name,
            old_text=old_text,
            new_text=new_text,
            created_at=utcnow(),
        )
        key = pending_key(chat_id, user_id)
        pipe = self._client.pipeline(transaction=True)
        pipe.delete(key)
        pipe.set(key, change.to_json())
        pipe.sadd(survey_pending_key(survey_id), str(user_id))
        pipe.execute()
        logger.info(
            "Pending change %s created for user %s in chat %s (survey %s)",
            change.id,
            user_id,
            chat_id,
            survey_id,
        )
        return change

    def resolve_apply(self, chat_id: int, user_id: int) -> Optional[PendingChange]:
        return self._take(chat_id, user_id, "applied")

    def resolve_reject(self, chat_id: int, user_id: int) -> Optional[PendingChange]:
        return self._take(chat_id, user_id, "rejected")

    def recently_resolved(self, chat_id: int, user_id: int) -> Optional[int]:
        """Survey id of a change this member resolved within the replay window."""

        raw = self._client.get(resolved_marker_key(chat_id, user_id))
        return int(raw) if raw is not None else None

    def discard_for_survey(self, survey_id: int, chat_id: int) -> List[PendingChange]:
        """Drop every proposal still open for ``survey_id``.

        A member whose key now holds a proposal for a different survey keeps
        it. No replay marker is written.
        """

        discarded: List[PendingChange] = []
        index_key = survey_pending_key(survey_id)
        for user_id in self._client.smembers(index_key):
            key = pending_key(chat_id, int(user_id))

            def _apply(pipe: Pipeline, key: str = key) -> Optional[PendingChange]:
                raw = pipe.get(key)
                if raw is None:
                    return None
                change = PendingChange.from_json(raw)
                if change.survey_id != survey_id:
                    return None
                pipe.multi()
                pipe.delete(key)
                return change

            change = self._client.transaction(_apply, key, value_from_callable=True)
            if change is not None:
                discarded.append(change)
        self._client.delete(index_key)
        if discarded:
            logger.info(
                "Discarded %s pending change(s) for finished survey %s",
                len(discarded),
                survey_id,
            )
        return discarded

    def _take(
        self,
        chat_id: int,
        user_id: int,
        resolution: str,
    ) -> Optional[PendingChange]:
        key = pending_key(chat_id, user_id)
        pipe = self._client.pipeline(transaction=True)
        pipe.get(key)
        pipe.delete(key)
        raw, _ = pipe.execute()
        if raw is None:
            logger.debug(
                "No pending change to resolve for user %s in chat %s",
                user_id,
                chat_id,
            )
            return None
        change = PendingChange.from_json(raw)
        pipe = self._client.pipeline(transaction=True)
        pipe.srem(survey_pending_key(change.survey_id), str(user_id))
        if self._replay_window_seconds > 0:
            pipe.set(
                resolved_marker_key(chat_id, user_id),
                str(change.survey_id),
                ex=self._replay_window_seconds,
            )
        pipe.execute()
        logger.info(
            "Pending change %s %s for user %s in chat %s",
            change.id,
            resolution,
            user_id,
            chat_id,
        )
        return change
