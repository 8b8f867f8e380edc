"""Domain records for surveys, responses, and pending answer changes."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class SurveyStatus(str, Enum):
    """Lifecycle states of a survey."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not SurveyStatus.ACTIVE


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.astimezone(timezone.utc).isoformat()


def _parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(slots=True)
class Survey:
    """A question posed to a chat together with its response quota."""

    id: int
    chat_id: int
    question: str
    expected_count: int
    status: SurveyStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    summary: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status is SurveyStatus.ACTIVE

    def to_redis(self) -> Dict[str, str]:
        return {
            "id": str(self.id),
            "chat_id": str(self.chat_id),
            "question": self.question,
            "expected_count": str(self.expected_count),
            "status": self.status.value,
            "created_at": _format_timestamp(self.created_at),
            "completed_at": _format_timestamp(self.completed_at),
            "summary": self.summary or "",
        }

    @classmethod
    def from_redis(cls, payload: Mapping[str, str]) -> "Survey":
        created_at = _parse_timestamp(payload.get("created_at"))
        return cls(
            id=int(payload["id"]),
            chat_id=int(payload["chat_id"]),
            question=payload.get("question", ""),
            expected_count=int(payload["expected_count"]),
            status=SurveyStatus(payload["status"]),
            created_at=created_at or utcnow(),
            completed_at=_parse_timestamp(payload.get("completed_at")),
            summary=payload.get("summary") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "chat_id": self.chat_id,
            "question": self.question,
            "expected_count": self.expected_count,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "summary": self.summary,
        }


@dataclass(slots=True)
class SurveyResponse:
    """One user's answer to a survey question."""

    id: int
    survey_id: int
    user_id: int
    display_name: Optional[str]
    text: str
    responded_at: datetime

    @property
    def author(self) -> str:
        return self.display_name or f"User {self.user_id}"

    def to_json(self) -> str:
        return json.dumps(
            {
                "id": self.id,
                "survey_id": self.survey_id,
                "user_id": self.user_id,
                "display_name": self.display_name,
                "text": self.text,
                "responded_at": _format_timestamp(self.responded_at),
            },
            ensure_ascii=False,
        )

    @classmethod
    def from_json(cls, raw: str) -> "SurveyResponse":
        data = json.loads(raw)
        return cls(
            id=int(data["id"]),
            survey_id=int(data["survey_id"]),
            user_id=int(data["user_id"]),
            display_name=data.get("display_name"),
            text=data["text"],
            responded_at=_parse_timestamp(data.get("responded_at")) or utcnow(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "text": self.text,
            "responded_at": self.responded_at.isoformat(),
        }


@dataclass(slots=True)
class PendingChange:
    """An unconfirmed request to overwrite a previously recorded answer."""

    id: int
    survey_id: int
    chat_id: int
    user_id: int
    display_name: Optional[str]
    old_text: str
    new_text: str
    created_at: datetime

    @property
    def author(self) -> str:
        return self.display_name or f"User {self.user_id}"

    def to_json(self) -> str:
        return json.dumps(
            {
                "id": self.id,
                "survey_id": self.survey_id,
                "chat_id": self.chat_id,
                "user_id": self.user_id,
                "display_name": self.display_name,
                "old_text": self.old_text,
                "new_text": self.new_text,
                "created_at": _format_timestamp(self.created_at),
            },
            ensure_ascii=False,
        )

    @classmethod
    def from_json(cls, raw: str) -> "PendingChange":
        data = json.loads(raw)
        return cls(
            id=int(data["id"]),
            survey_id=int(data["survey_id"]),
            chat_id=int(data["chat_id"]),
            user_id=int(data["user_id"]),
            display_name=data.get("display_name"),
            old_text=data["old_text"],
            new_text=data["new_text"],
            created_at=_parse_timestamp(data.get("created_at")) or utcnow(),
        )
