"""Command line entry-point for the chat survey agent."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Callable, List, Optional

from .config import AppSettings
from .errors import InvalidSurveyInputError, SurveyNotFoundError
from .runtime import SurveyRuntime, build_runtime
from .survey_store import parse_expected_count

CommandHandler = Callable[[SurveyRuntime, argparse.Namespace], None]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chat-survey-agent",
        description="Collect chat responses to a question and publish a summary.",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        help="Logging level (default: info).",
    )
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP API with the timeout watchdog",
    )
    serve_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the API server (default: 127.0.0.1).",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8081,
        help="Port for the API server (default: 8081).",
    )
    serve_parser.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origin",
        help="Optional CORS origin(s) to allow. Defaults to '*'.",
    )
    serve_parser.add_argument(
        "--tracing",
        action="store_true",
        help="Enable OpenTelemetry tracing for model calls.",
    )
    serve_parser.set_defaults(func=_handle_serve)

    bot_parser = subparsers.add_parser(
        "bot",
        help="Listen to Telegram chats and collect answers",
    )
    bot_parser.set_defaults(func=_handle_bot)

    create_parser = subparsers.add_parser(
        "create",
        help="Start a survey in a chat",
    )
    create_parser.add_argument("chat_id", type=int, help="Target chat id")
    create_parser.add_argument("question", help="Question to ask")
    create_parser.add_argument(
        "expected_count",
        help="Number of responses that completes the survey",
    )
    create_parser.set_defaults(func=_handle_create)

    ask_parser = subparsers.add_parser(
        "ask",
        help="Start a survey described in natural language",
    )
    ask_parser.add_argument("request", help='e.g. "ask 3 people in -123 their favourite food"')
    ask_parser.set_defaults(func=_handle_ask)

    status_parser = subparsers.add_parser(
        "status",
        help="Show the active survey of a chat",
    )
    status_parser.add_argument("chat_id", type=int, help="Chat id to inspect")
    status_parser.set_defaults(func=_handle_status)

    cancel_parser = subparsers.add_parser(
        "cancel",
        help="Cancel an active survey",
    )
    cancel_parser.add_argument("survey_id", type=int, help="Survey identifier")
    cancel_parser.add_argument(
        "--reason",
        default="timeout",
        help="Cancellation reason shown in the chat (default: timeout).",
    )
    cancel_parser.set_defaults(func=_handle_cancel)

    sweep_parser = subparsers.add_parser(
        "sweep",
        help="Run one timeout and completion sweep",
    )
    sweep_parser.set_defaults(func=_handle_sweep)
    return parser


def run_cli(argv: Optional[List[str]] = None) -> None:
    """Entry-point invoked from ``python -m chat_survey_agent``."""

    arg_list = list(argv) if argv is not None else sys.argv[1:]
    args = _build_parser().parse_args(arg_list)
    logging.basicConfig(level=args.log_level.upper())
    try:
        settings = AppSettings.load()
    except RuntimeError as exc:
        logging.error("Failed to load AppSettings: %s", exc)
        raise SystemExit(1) from exc

    runtime = build_runtime(settings)
    handler: CommandHandler = args.func
    try:
        handler(runtime, args)
    except InvalidSurveyInputError as exc:
        raise SystemExit(f"Invalid survey: {exc}") from exc
    except SurveyNotFoundError as exc:
        raise SystemExit(str(exc)) from exc


def _handle_serve(runtime: SurveyRuntime, args: argparse.Namespace) -> None:
    from .api import run_api_server

    if args.tracing:
        from .observability import initialize_tracing

        initialize_tracing()
    run_api_server(
        runtime,
        host=args.host,
        port=args.port,
        allow_origins=args.allow_origin,
        log_level=args.log_level,
    )


def _handle_bot(runtime: SurveyRuntime, args: argparse.Namespace) -> None:
    from .telegram_listener import run_bot

    asyncio.run(run_bot(runtime))


def _handle_create(runtime: SurveyRuntime, args: argparse.Namespace) -> None:
    expected_count = parse_expected_count(args.expected_count)
    survey = asyncio.run(
        runtime.lifecycle.start_survey(args.chat_id, args.question, expected_count)
    )
    print(
        f"Survey created successfully (ID: {survey.id}). "
        f"Waiting for {survey.expected_count} responses."
    )


def _handle_ask(runtime: SurveyRuntime, args: argparse.Namespace) -> None:
    parser = runtime.request_parser
    if parser is None:
        raise SystemExit("No chat model configured. Set MAF_MODEL to parse requests.")

    async def _start() -> None:
        request = await parser.parse(args.request)
        survey = await runtime.lifecycle.start_survey(
            request.chat_id,
            request.question,
            request.expected_count,
        )
        print(
            f"Survey {survey.id} sent to chat {survey.chat_id}: {survey.question} "
            f"({survey.expected_count} responses expected)"
        )

    asyncio.run(_start())


def _handle_status(runtime: SurveyRuntime, args: argparse.Namespace) -> None:
    progress = runtime.lifecycle.describe(args.chat_id)
    if progress is None:
        print("No active survey in this chat.")
        return
    survey = progress.survey
    print(f"Active survey {survey.id}: {survey.question}")
    print(f"Responses: {progress.response_count}/{survey.expected_count}")
    print(f"Started: {survey.created_at.isoformat()}")


def _handle_cancel(runtime: SurveyRuntime, args: argparse.Namespace) -> None:
    cancelled = asyncio.run(
        runtime.lifecycle.cancel(args.survey_id, reason=args.reason)
    )
    if cancelled:
        print(f"Survey {args.survey_id} cancelled.")
    else:
        print(f"Survey {args.survey_id} was already finished; nothing to cancel.")


def _handle_sweep(runtime: SurveyRuntime, args: argparse.Namespace) -> None:
    report = asyncio.run(runtime.watchdog.sweep())
    print(
        f"Cancelled: {report.cancelled or 'none'} | "
        f"Completed: {report.completed or 'none'} | "
        f"Still active: {report.still_active or 'none'}"
    )


if __name__ == "__main__":  # pragma: no cover - manual execution hook
    run_cli()
