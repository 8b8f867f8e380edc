"""Redis connection and key layout shared by the survey stores."""

from __future__ import annotations

import logging

import redis
from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

SURVEY_SEQUENCE = "survey:seq"
RESPONSE_SEQUENCE = "response:seq"
PENDING_SEQUENCE = "pending:seq"
ACTIVE_SURVEYS = "surveys:active"


def survey_key(survey_id: int) -> str:
    return f"survey:{survey_id}"


def chat_active_key(chat_id: int) -> str:
    return f"chat:{chat_id}:active"


def responses_key(survey_id: int) -> str:
    return f"survey:{survey_id}:responses"


def survey_pending_key(survey_id: int) -> str:
    return f"survey:{survey_id}:pending"


def pending_key(chat_id: int, user_id: int) -> str:
    return f"pending:{chat_id}:{user_id}"


def resolved_marker_key(chat_id: int, user_id: int) -> str:
    return f"pending:{chat_id}:{user_id}:resolved"


def connect_redis(redis_url: str) -> Redis:
    """Open a client for ``redis_url`` and verify the server answers."""

    if not redis_url or not redis_url.strip():
        raise RuntimeError("A Redis URL is required for survey storage.")
    client = redis.from_url(  # type: ignore[call-overload]
        redis_url,
        decode_responses=True,
    )
    try:
        client.ping()
    except RedisError as exc:
        logger.error("Redis connection failed for %s: %s", redis_url, exc)
        raise
    return client
