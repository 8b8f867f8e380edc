"""Prompt-in, text-out access to the configured Agent Framework chat model.

Results analysis and survey intake each send one prompt and read one reply,
so this wrapper exposes :meth:`MAFChatClient.ask` and hides which provider
package backs it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import import_module
from typing import Any, Callable, Dict, List, Optional

from agent_framework import ChatMessage, Role

from .config import ModelSettings

logger = logging.getLogger(__name__)


class MAFIntegrationError(RuntimeError):
    """Raised when no chat client can be built for the configured provider."""


@dataclass(frozen=True, slots=True)
class _Provider:
    module: str
    client_class: str
    options: Callable[[ModelSettings], Dict[str, Any]]


def _azure_options(settings: ModelSettings) -> Dict[str, Any]:
    return {
        "api_key": settings.api_key,
        "deployment_name": settings.model,
        "endpoint": settings.endpoint,
        "api_version": settings.api_version,
    }


def _openai_options(settings: ModelSettings) -> Dict[str, Any]:
    return {
        "api_key": settings.api_key,
        "model_id": settings.model,
        "base_url": settings.endpoint,
    }


_AZURE = _Provider("agent_framework.azure", "AzureOpenAIChatClient", _azure_options)
_OPENAI = _Provider("agent_framework.openai", "OpenAIChatClient", _openai_options)

PROVIDERS: Dict[str, _Provider] = {
    "azure-openai": _AZURE,
    "azure_openai": _AZURE,
    "azure": _AZURE,
    "openai": _OPENAI,
    "oai": _OPENAI,
}


def build_chat_client(settings: ModelSettings) -> Any:
    provider = PROVIDERS.get(settings.provider.strip().lower())
    if provider is None:
        raise MAFIntegrationError(
            f"Unsupported MAF provider '{settings.provider}'. "
            f"Choose one of: {', '.join(sorted(PROVIDERS))}."
        )
    try:
        module = import_module(provider.module)
    except ModuleNotFoundError as exc:  # pragma: no cover - MAF runtime
        raise MAFIntegrationError(
            f"Agent Framework module '{exc.name or provider.module}' is missing; "
            "reinstall the project with `pip install -e .`."
        ) from exc
    client_cls = getattr(module, provider.client_class)
    logger.info("Using %s for model %s", provider.client_class, settings.model)
    return client_cls(**provider.options(settings))


class MAFChatClient:
    """Sends survey prompts to the configured model and returns plain text."""

    def __init__(self, settings: ModelSettings, *, client: Any = None) -> None:
        self._settings = settings
        self._client = client if client is not None else build_chat_client(settings)

    @property
    def model(self) -> str:
        return self._settings.model

    async def ask(self, prompt: str, *, system: Optional[str] = None) -> str:
        """Send ``prompt`` (after an optional system message) and return the reply."""

        messages: List[ChatMessage] = []
        if system:
            messages.append(ChatMessage(role=Role.SYSTEM, text=system))
        messages.append(ChatMessage(role=Role.USER, text=prompt))
        response = await self._client.get_response(messages=messages)
        return (response.text or "").strip()
