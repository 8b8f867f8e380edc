"""Inactivity timeouts and periodic completion re-checks."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from .errors import SurveyNotFoundError
from .lifecycle import SurveyLifecycle
from .models import utcnow

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepReport:
    """Survey ids touched by a single sweep."""

    cancelled: List[int] = field(default_factory=list)
    completed: List[int] = field(default_factory=list)
    still_active: List[int] = field(default_factory=list)


class SurveyWatchdog:
    """Cancels surveys that went quiet and re-runs missed completion checks.

    A survey's last activity is its newest response, or its creation time
    when nobody answered yet.
    """

    def __init__(
        self,
        lifecycle: SurveyLifecycle,
        *,
        timeout: timedelta,
        interval_seconds: float = 60.0,
    ) -> None:
        self._lifecycle = lifecycle
        self._timeout = timeout
        self._interval_seconds = interval_seconds

    async def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or utcnow()
        report = SweepReport()
        for survey in self._lifecycle.surveys.list_active():
            try:
                # a met quota wins over the timeout
                if await self._lifecycle.check_completion(survey.id):
                    report.completed.append(survey.id)
                    continue
                last_activity = (
                    self._lifecycle.ledger.latest_activity(survey.id)
                    or survey.created_at
                )
                if now - last_activity >= self._timeout:
                    if await self._lifecycle.cancel(survey.id, reason="timeout"):
                        report.cancelled.append(survey.id)
                    continue
                report.still_active.append(survey.id)
            except SurveyNotFoundError:
                logger.warning("Survey %s disappeared during sweep", survey.id)
        if report.cancelled or report.completed:
            logger.info(
                "Sweep cancelled %s and completed %s survey(s)",
                len(report.cancelled),
                len(report.completed),
            )
        return report

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Sweep every ``interval_seconds`` until ``stop_event`` is set."""

        stop_event = stop_event or asyncio.Event()
        logger.info(
            "Survey watchdog started (timeout=%ss, interval=%ss)",
            int(self._timeout.total_seconds()),
            self._interval_seconds,
        )
        while not stop_event.is_set():
            try:
                await self.sweep()
            except Exception:
                logger.exception("Survey sweep failed")
            try:
                await asyncio.wait_for(
                    stop_event.wait(),
                    timeout=self._interval_seconds,
                )
            except asyncio.TimeoutError:
                continue
        logger.info("Survey watchdog stopped")
