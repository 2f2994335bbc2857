from __future__ import annotations

from typing import Any

import httpx

from lazycat.llm.types import Availability, ChatProvider, ChatResponse, ProviderUnavailable
from lazycat.telemetry.logging import get_logger


class OllamaProvider(ChatProvider):
    def __init__(
        self,
        host: str,
        model: str = "llama3.2",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._host = host.rstrip("/")
        self._model = model
        self._client = httpx.AsyncClient(base_url=self._host, timeout=timeout, transport=transport)
        self._logger = get_logger(__name__)
        self.name = "ollama"

    async def availability(self) -> Availability:
        try:
            resp = await self._client.get("/api/tags")
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            self._logger.warning("ollama.unavailable", error=str(exc))
            return "unavailable"
        try:
            models = resp.json().get("models", [])
            names = {model.get("name", "") for model in models}
        except (ValueError, AttributeError, TypeError) as exc:
            self._logger.warning("ollama.unavailable", error=f"malformed /api/tags body: {exc}")
            return "unavailable"
        if self._model in names or f"{self._model}:latest" in names:
            return "available"
        self._logger.warning("ollama.model.missing", model=self._model)
        return "unavailable"

    async def chat(
        self,
        prompt: str,
        *,
        system: str | None = None,
        response_schema: dict[str, Any] | None = None,
    ) -> ChatResponse:
        payload: dict[str, Any] = {
            "model": self._model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": 0},
        }
        if system:
            payload["system"] = system
        if response_schema is not None:
            payload["format"] = response_schema
        self._logger.debug("ollama.chat", model=self._model, prompt_len=len(prompt))
        try:
            resp = await self._client.post("/api/generate", json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(f"Ollama request failed: {exc}") from exc
        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderUnavailable(f"Ollama returned a non-JSON body: {exc}") from exc
        if not isinstance(data, dict) or not isinstance(data.get("response", ""), str):
            raise ProviderUnavailable("Ollama returned an unexpected response shape")
        return ChatResponse(text=data.get("response", ""), model=data.get("model"))

    async def aclose(self) -> None:
        await self._client.aclose()
