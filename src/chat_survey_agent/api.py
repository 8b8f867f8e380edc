"""FastAPI surface for starting surveys and delivering chat events."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Sequence

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .errors import InvalidSurveyInputError, SurveyNotFoundError
from .lifecycle import SurveyProgress
from .runtime import SurveyRuntime

logger = logging.getLogger(__name__)


class SurveyCreateRequest(BaseModel):
    chat_id: int
    question: str
    expected_count: int


class SurveyTextRequest(BaseModel):
    text: str = Field(min_length=1)


class InboundMessage(BaseModel):
    chat_id: int
    user_id: int
    display_name: Optional[str] = None
    text: str


class CancelRequest(BaseModel):
    reason: str = "timeout"


def _progress_payload(progress: SurveyProgress) -> Dict[str, Any]:
    payload = progress.survey.to_dict()
    payload["response_count"] = progress.response_count
    payload["remaining"] = progress.remaining
    return payload


def create_app(
    runtime: SurveyRuntime,
    *,
    allow_origins: Sequence[str] | None = None,
    run_watchdog: bool = False,
) -> FastAPI:
    """Create the HTTP app; optionally sweep for timeouts while serving."""

    lifecycle = runtime.lifecycle

    @asynccontextmanager
    async def _lifespan(_: FastAPI) -> AsyncIterator[None]:
        if not run_watchdog:
            yield
            return
        stop_event = asyncio.Event()
        task = asyncio.create_task(runtime.watchdog.run(stop_event))
        try:
            yield
        finally:
            stop_event.set()
            await task

    app = FastAPI(title="Chat Survey Agent", lifespan=_lifespan)

    origins = list(allow_origins) if allow_origins else ["*"]
    allow_credentials = origins != ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _load_progress(survey_id: int) -> SurveyProgress:
        try:
            survey = lifecycle.surveys.get_by_id(survey_id)
        except SurveyNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return SurveyProgress(
            survey=survey,
            response_count=lifecycle.ledger.count_for(survey_id),
        )

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/surveys", status_code=201)
    async def create_survey(payload: SurveyCreateRequest) -> Dict[str, Any]:
        try:
            survey = await lifecycle.start_survey(
                payload.chat_id,
                payload.question,
                payload.expected_count,
            )
        except InvalidSurveyInputError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return survey.to_dict()

    @app.post("/surveys/requests", status_code=201)
    async def create_survey_from_text(payload: SurveyTextRequest) -> Dict[str, Any]:
        parser = runtime.request_parser
        if parser is None:
            raise HTTPException(
                status_code=503,
                detail="No chat model configured. Set MAF_MODEL to parse requests.",
            )
        try:
            request = await parser.parse(payload.text)
            survey = await lifecycle.start_survey(
                request.chat_id,
                request.question,
                request.expected_count,
            )
        except InvalidSurveyInputError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return survey.to_dict()

    @app.get("/surveys/{survey_id}")
    async def get_survey(survey_id: int) -> Dict[str, Any]:
        progress = _load_progress(survey_id)
        payload = _progress_payload(progress)
        payload["responses"] = [
            response.to_dict() for response in lifecycle.ledger.list_for(survey_id)
        ]
        return payload

    @app.get("/chats/{chat_id}/survey")
    async def get_active_survey(chat_id: int) -> Dict[str, Any]:
        progress = lifecycle.describe(chat_id)
        if progress is None:
            raise HTTPException(
                status_code=404,
                detail=f"No active survey in chat {chat_id}",
            )
        return _progress_payload(progress)

    @app.post("/surveys/{survey_id}/check")
    async def check_survey(survey_id: int) -> Dict[str, Any]:
        try:
            completed = await lifecycle.check_completion(survey_id)
        except SurveyNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        payload = _progress_payload(_load_progress(survey_id))
        payload["completed_now"] = completed
        return payload

    @app.post("/surveys/{survey_id}/cancel")
    async def cancel_survey(
        survey_id: int,
        payload: Optional[CancelRequest] = None,
    ) -> Dict[str, Any]:
        reason = payload.reason if payload else "timeout"
        try:
            cancelled = await lifecycle.cancel(survey_id, reason=reason)
        except SurveyNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        result = _progress_payload(_load_progress(survey_id))
        result["cancelled_now"] = cancelled
        return result

    @app.post("/messages")
    async def receive_message(payload: InboundMessage) -> Dict[str, Any]:
        result = await lifecycle.on_message(
            payload.chat_id,
            payload.user_id,
            payload.display_name,
            payload.text,
        )
        return {
            "outcome": result.outcome.value,
            "survey_id": result.survey_id,
            "completed": result.completed,
        }

    return app


def run_api_server(
    runtime: SurveyRuntime,
    *,
    host: str = "127.0.0.1",
    port: int = 8081,
    allow_origins: Sequence[str] | None = None,
    log_level: str = "info",
) -> None:
    """Serve the HTTP API with the timeout watchdog running alongside."""

    app = create_app(runtime, allow_origins=allow_origins, run_watchdog=True)
    logger.info("Starting survey API on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_level=log_level)
