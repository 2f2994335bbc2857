from __future__ import annotations

import json

from lazycat.config import InterpreterSettings
from lazycat.llm.command_schema import COMMAND_SCHEMA, ROUTER_SYSTEM_PROMPT
from lazycat.llm.providers.gemini import GeminiProvider
from lazycat.llm.providers.ollama import OllamaProvider
from lazycat.llm.types import ChatProvider, ProviderUnavailable
from lazycat.telemetry.logging import get_logger


class InterpreterUnavailable(RuntimeError):
    """The natural-language interpreter cannot run on this device right now."""


class CommandInterpreter:
    """Turns one free-text utterance into the interpreter's raw (unvalidated) JSON text."""

    def __init__(self, provider: ChatProvider) -> None:
        self._provider = provider
        self._logger = get_logger(__name__)

    @property
    def provider_name(self) -> str:
        return self._provider.name

    async def interpret(self, utterance: str) -> str:
        availability = await self._provider.availability()
        if availability == "unavailable":
            raise InterpreterUnavailable(f"Interpreter '{self._provider.name}' is unavailable on this device.")

        prompt = (
            f"{utterance.strip()}\n\n"
            f"Respond with one JSON object matching this schema:\n{json.dumps(COMMAND_SCHEMA)}"
        )
        try:
            response = await self._provider.chat(
                prompt,
                system=ROUTER_SYSTEM_PROMPT,
                response_schema=COMMAND_SCHEMA,
            )
        except ProviderUnavailable as exc:
            raise InterpreterUnavailable(str(exc)) from exc
        self._logger.info(
            "interpreter.response",
            provider=self._provider.name,
            utterance=utterance,
            raw=response.text[:400],
        )
        return response.text

    async def aclose(self) -> None:
        await self._provider.aclose()


def build_provider(settings: InterpreterSettings) -> ChatProvider:
    if settings.provider == "gemini":
        return GeminiProvider(settings.gemini_api_key, settings.gemini_model, timeout=settings.timeout_seconds)
    return OllamaProvider(settings.ollama_host, settings.ollama_model, timeout=settings.timeout_seconds)


__all__ = ["CommandInterpreter", "InterpreterUnavailable", "build_provider"]
