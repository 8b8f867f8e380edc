"""Survey state machine: arbitration of inbound answers and completion."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from . import messages
from .errors import ResponseConflictError, ResponseNotFoundError
from .models import PendingChange, Survey, SurveyResponse
from .notifier import OutboundNotifier
from .pending_changes import PendingChangeArbiter
from .response_ledger import ResponseLedger
from .summarizer import ListingSummarizer, ResultsSummarizer
from .survey_store import SurveyStore

logger = logging.getLogger(__name__)


class MessageOutcome(str, Enum):
    """How an inbound chat message was handled."""

    IGNORED = "ignored"
    RECORDED = "recorded"
    DUPLICATE = "duplicate"
    CHANGE_PROPOSED = "change_proposed"
    CHANGE_APPLIED = "change_applied"
    CHANGE_REJECTED = "change_rejected"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    DROPPED = "dropped"


@dataclass(slots=True)
class MessageResult:
    outcome: MessageOutcome
    survey_id: Optional[int] = None
    completed: bool = False


@dataclass(slots=True)
class SurveyProgress:
    """Snapshot of a survey and how many answers it has collected."""

    survey: Survey
    response_count: int

    @property
    def remaining(self) -> int:
        return max(self.survey.expected_count - self.response_count, 0)


class SurveyLifecycle:
    """Routes chat messages through the survey state machine.

    A survey starts ACTIVE and ends COMPLETED or CANCELLED. Each chat member
    is either free to answer or awaiting a yes/no confirmation for a change
    to an earlier answer. The ACTIVE to COMPLETED compare-and-swap in
    :class:`SurveyStore` decides which caller publishes results, so
    concurrent completion checks never publish twice.
    """

    def __init__(
        self,
        *,
        surveys: SurveyStore,
        ledger: ResponseLedger,
        arbiter: PendingChangeArbiter,
        notifier: OutboundNotifier,
        summarizer: Optional[ResultsSummarizer] = None,
    ) -> None:
        self._surveys = surveys
        self._ledger = ledger
        self._arbiter = arbiter
        self._notifier = notifier
        self._summarizer = summarizer or ListingSummarizer()
        self._fallback_summarizer = ListingSummarizer()

    @property
    def surveys(self) -> SurveyStore:
        return self._surveys

    @property
    def ledger(self) -> ResponseLedger:
        return self._ledger

    async def start_survey(
        self,
        chat_id: int,
        question: str,
        expected_count: int,
    ) -> Survey:
        """Create a survey, retire older ones in the chat, and announce it."""

        survey = self._surveys.create(chat_id, question, expected_count)
        for previous in self._surveys.list_active_in_chat(survey.chat_id):
            if previous.id < survey.id:
                logger.info(
                    "Survey %s supersedes active survey %s in chat %s",
                    survey.id,
                    previous.id,
                    survey.chat_id,
                )
                await self.cancel(previous.id, reason="superseded")
        await self._notify(survey.chat_id, messages.survey_announcement(survey))
        return survey

    def describe(self, chat_id: int) -> Optional[SurveyProgress]:
        survey = self._surveys.get_active(chat_id)
        if survey is None:
            return None
        return SurveyProgress(
            survey=survey,
            response_count=self._ledger.count_for(survey.id),
        )

    async def on_message(
        self,
        chat_id: int,
        user_id: int,
        display_name: Optional[str],
        text: str,
    ) -> MessageResult:
        """Handle one inbound chat message."""

        normalized = (text or "").strip()
        if not normalized:
            return MessageResult(MessageOutcome.IGNORED)
        reply = normalized.lower()

        active: Optional[Survey] = None
        pending = self._arbiter.get(chat_id, user_id)
        if pending is not None:
            if reply in messages.AFFIRMATIVE_REPLIES:
                return await self._apply_change(chat_id, user_id)
            if reply in messages.NEGATIVE_REPLIES:
                return await self._reject_change(chat_id, user_id)
            active = self._surveys.get_active(chat_id)
            if active is None or active.id == pending.survey_id:
                logger.info(
                    "Ignoring message from user %s in chat %s while change %s awaits yes/no",
                    user_id,
                    chat_id,
                    pending.id,
                )
                return MessageResult(
                    MessageOutcome.AWAITING_CONFIRMATION,
                    survey_id=pending.survey_id,
                )
            logger.info(
                "Discarding stale pending change %s for user %s; survey %s is now active",
                pending.id,
                user_id,
                active.id,
            )
            self._arbiter.resolve_reject(chat_id, user_id)
        elif reply in messages.CONFIRMATION_REPLIES:
            active = self._surveys.get_active(chat_id)
            if active is not None and self._is_replayed_confirmation(active, user_id):
                logger.info(
                    "Ignoring repeated confirmation '%s' from user %s in chat %s",
                    reply,
                    user_id,
                    chat_id,
                )
                return MessageResult(MessageOutcome.IGNORED, survey_id=active.id)

        if active is None:
            active = self._surveys.get_active(chat_id)
        if active is None:
            return MessageResult(MessageOutcome.IGNORED)
        return await self._record(active.id, user_id, display_name, normalized)

    async def check_completion(self, survey_id: int) -> bool:
        """Complete ``survey_id`` if its quota is met.

        Returns ``True`` only for the call that performed the transition and
        published the results.
        """

        survey = self._surveys.get_by_id(survey_id)
        if not survey.is_active:
            logger.debug(
                "Survey %s is %s; completion check skipped",
                survey_id,
                survey.status.value,
            )
            return False

        response_count = self._ledger.count_for(survey_id)
        logger.info(
            "Survey %s has %s/%s responses",
            survey_id,
            response_count,
            survey.expected_count,
        )
        if response_count < survey.expected_count:
            return False

        if not self._surveys.try_complete(survey_id):
            logger.info("Survey %s was completed by a concurrent check", survey_id)
            return False
        self._arbiter.discard_for_survey(survey_id, survey.chat_id)

        responses = self._ledger.list_for(survey_id)
        summary = await self._summarize(survey, responses)
        self._surveys.mark_completed(survey_id, summary)
        await self._notify(survey.chat_id, messages.survey_results(survey, summary))
        return True

    async def cancel(self, survey_id: int, reason: str = "timeout") -> bool:
        """Cancel an active survey; a finished survey is left untouched."""

        survey = self._surveys.get_by_id(survey_id)
        if not self._surveys.mark_cancelled(survey_id):
            logger.info(
                "Survey %s is %s; cancellation (%s) is a no-op",
                survey_id,
                self._surveys.get_by_id(survey_id).status.value,
                reason,
            )
            return False

        self._arbiter.discard_for_survey(survey_id, survey.chat_id)
        responses = self._ledger.list_for(survey_id)
        logger.info(
            "Survey %s cancelled (%s) with %s/%s responses",
            survey_id,
            reason,
            len(responses),
            survey.expected_count,
        )
        await self._notify(
            survey.chat_id,
            messages.survey_cancelled(survey, responses, reason),
        )
        return True

    def _is_replayed_confirmation(self, active: Survey, user_id: int) -> bool:
        # only a reply to a change on this survey, by someone who answered it
        if self._arbiter.recently_resolved(active.chat_id, user_id) != active.id:
            return False
        return self._ledger.find(active.id, user_id) is not None

    async def _record(
        self,
        survey_id: int,
        user_id: int,
        display_name: Optional[str],
        text: str,
    ) -> MessageResult:
        survey = self._surveys.get_by_id(survey_id)
        if not survey.is_active:
            logger.info(
                "Survey %s is %s; dropping response from user %s",
                survey_id,
                survey.status.value,
                user_id,
            )
            return MessageResult(MessageOutcome.DROPPED, survey_id=survey_id)

        existing = self._ledger.find(survey_id, user_id)
        if existing is None:
            try:
                self._ledger.insert(survey_id, user_id, display_name, text)
            except ResponseConflictError:
                existing = self._ledger.find(survey_id, user_id)
                if existing is None:
                    raise
            else:
                completed = await self.check_completion(survey_id)
                return MessageResult(
                    MessageOutcome.RECORDED,
                    survey_id=survey_id,
                    completed=completed,
                )

        return await self._propose_change(survey, existing, display_name, text)

    async def _propose_change(
        self,
        survey: Survey,
        existing: SurveyResponse,
        display_name: Optional[str],
        text: str,
    ) -> MessageResult:
        if existing.text == text:
            logger.info(
                "User %s repeated their answer for survey %s; nothing to change",
                existing.user_id,
                survey.id,
            )
            return MessageResult(MessageOutcome.DUPLICATE, survey_id=survey.id)

        logger.info(
            "User %s already responded to survey %s, initiating change confirmation",
            existing.user_id,
            survey.id,
        )
        change = self._arbiter.propose(
            survey.id,
            survey.chat_id,
            existing.user_id,
            display_name or existing.display_name,
            existing.text,
            text,
        )
        await self._notify(survey.chat_id, messages.change_confirmation_prompt(change))
        return MessageResult(MessageOutcome.CHANGE_PROPOSED, survey_id=survey.id)

    async def _apply_change(self, chat_id: int, user_id: int) -> MessageResult:
        change = self._arbiter.resolve_apply(chat_id, user_id)
        if change is None:
            return MessageResult(MessageOutcome.IGNORED)

        survey = self._surveys.get_by_id(change.survey_id)
        if not survey.is_active:
            self._log_late_resolution(change, survey)
            return MessageResult(MessageOutcome.DROPPED, survey_id=survey.id)

        try:
            self._ledger.replace(change.survey_id, user_id, change.new_text)
        except ResponseNotFoundError:
            logger.warning(
                "Pending change %s refers to a missing response; dropping it",
                change.id,
            )
            return MessageResult(MessageOutcome.DROPPED, survey_id=survey.id)

        logger.info("User %s confirmed response change", user_id)
        await self._notify(chat_id, messages.change_applied(change))
        completed = await self.check_completion(change.survey_id)
        return MessageResult(
            MessageOutcome.CHANGE_APPLIED,
            survey_id=change.survey_id,
            completed=completed,
        )

    async def _reject_change(self, chat_id: int, user_id: int) -> MessageResult:
        change = self._arbiter.resolve_reject(chat_id, user_id)
        if change is None:
            return MessageResult(MessageOutcome.IGNORED)

        survey = self._surveys.get_by_id(change.survey_id)
        if not survey.is_active:
            self._log_late_resolution(change, survey)
            return MessageResult(MessageOutcome.DROPPED, survey_id=survey.id)

        logger.info("User %s rejected response change", user_id)
        await self._notify(chat_id, messages.change_rejected(change))
        return MessageResult(MessageOutcome.CHANGE_REJECTED, survey_id=survey.id)

    async def _summarize(self, survey: Survey, responses: List[SurveyResponse]) -> str:
        try:
            return await self._summarizer.summarize(survey.question, responses)
        except Exception:
            logger.exception(
                "Summarizer failed for survey %s; publishing the raw responses",
                survey.id,
            )
            return await self._fallback_summarizer.summarize(survey.question, responses)

    async def _notify(self, chat_id: int, text: str) -> bool:
        try:
            delivered = await self._notifier.send(chat_id, text)
        except Exception:
            logger.exception("Failed to deliver message to chat %s", chat_id)
            return False
        if not delivered:
            logger.warning("Message to chat %s was not delivered", chat_id)
        return bool(delivered)

    @staticmethod
    def _log_late_resolution(change: PendingChange, survey: Survey) -> None:
        logger.info(
            "Survey %s is %s; discarding resolution of pending change %s",
            survey.id,
            survey.status.value,
            change.id,
        )
