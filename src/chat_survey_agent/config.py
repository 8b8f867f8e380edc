"""Configuration helpers for the chat survey agent."""

from __future__ import annotations

import os
from dataclasses import dataclass
from importlib import import_module
from typing import Optional


@dataclass(slots=True)
class ModelSettings:
    """Holds model-related configuration for the runtime."""

    provider: str
    model: str
    endpoint: Optional[str]
    api_key: str
    api_version: Optional[str]


@dataclass(slots=True)
class AppSettings:
    """Top-level application settings loaded from environment variables."""

    model: Optional[ModelSettings]
    redis_url: str
    telegram_bot_token: Optional[str]
    survey_timeout_seconds: int
    sweep_interval_seconds: int
    confirmation_replay_seconds: int

    @classmethod
    def load(cls) -> "AppSettings":
        """Load settings from the environment or .env file."""
        _ensure_dotenv()
        redis_url = os.getenv("SURVEY_REDIS_URL", "redis://localhost:6379/0")
        if not redis_url.strip():
            raise RuntimeError("SURVEY_REDIS_URL must not be empty.")
        telegram_bot_token = os.getenv("SURVEY_TELEGRAM_BOT_TOKEN", "").strip()
        return cls(
            model=_load_model_settings(),
            redis_url=redis_url.strip(),
            telegram_bot_token=telegram_bot_token or None,
            survey_timeout_seconds=_positive_int("SURVEY_TIMEOUT_SECONDS", "3600"),
            sweep_interval_seconds=_positive_int(
                "SURVEY_SWEEP_INTERVAL_SECONDS", "60"
            ),
            confirmation_replay_seconds=_positive_int(
                "SURVEY_CONFIRMATION_REPLAY_SECONDS", "300", minimum=0
            ),
        )


def _load_model_settings() -> Optional[ModelSettings]:
    model = os.getenv("MAF_MODEL", "").strip()
    if not model:
        return None
    api_key = os.getenv("MAF_MODEL_API_KEY")
    if not api_key:
        raise RuntimeError(
            "MAF_MODEL_API_KEY environment variable is required when MAF_MODEL is set."
        )
    return ModelSettings(
        provider=os.getenv("MAF_MODEL_PROVIDER", "azure-openai"),
        model=model,
        endpoint=os.getenv("MAF_MODEL_ENDPOINT"),
        api_key=api_key,
        api_version=os.getenv("MAF_MODEL_API_VERSION"),
    )


def _positive_int(name: str, default: str, *, minimum: int = 1) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc
    if value < minimum:
        raise RuntimeError(f"{name} must be at least {minimum}")
    return value


def _ensure_dotenv() -> None:
    """Load dotenv variables and provide a helpful error if missing."""

    try:
        dotenv_module = import_module("dotenv")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        raise RuntimeError(
            "python-dotenv is required. Install with `pip install "
            "python-dotenv`."
        ) from exc

    load_dotenv = getattr(dotenv_module, "load_dotenv")
    load_dotenv()
