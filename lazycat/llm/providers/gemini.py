from __future__ import annotations

from typing import Any

import httpx

from lazycat.llm.types import Availability, ChatProvider, ChatResponse, ProviderUnavailable
from lazycat.telemetry.logging import get_logger


class GeminiProvider(ChatProvider):
    def __init__(
        self,
        api_key: str | None,
        model: str = "gemini-1.5-flash",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url="https://generativelanguage.googleapis.com/v1beta",
            timeout=timeout,
            transport=transport,
        )
        self._api_key = api_key
        self._model = model
        self._logger = get_logger(__name__)
        self.name = "gemini"

    async def availability(self) -> Availability:
        if not self._api_key:
            return "unavailable"
        try:
            resp = await self._client.get(f"/models/{self._model}", params={"key": self._api_key})
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            self._logger.warning("gemini.unavailable", error=str(exc))
            return "unavailable"
        return "available"

    async def chat(
        self,
        prompt: str,
        *,
        system: str | None = None,
        response_schema: dict[str, Any] | None = None,
    ) -> ChatResponse:
        if not self._api_key:
            raise ProviderUnavailable("Gemini API key not configured")
        generation: dict[str, Any] = {"temperature": 0.2}
        if response_schema is not None:
            # responseSchema rejects JSON-schema keywords such as additionalProperties; JSON mode suffices.
            generation["responseMimeType"] = "application/json"
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation,
        }
        if system:
            payload["systemInstruction"] = {"role": "system", "parts": [{"text": system}]}
        try:
            resp = await self._client.post(
                f"/models/{self._model}:generateContent",
                params={"key": self._api_key},
                json=payload,
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(f"Gemini request failed: {exc}") from exc
        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderUnavailable(f"Gemini returned a non-JSON body: {exc}") from exc
        try:
            text = ""
            if data.get("candidates"):
                parts = data["candidates"][0].get("content", {}).get("parts", [])
                text = "".join(part.get("text", "") for part in parts)
        except (AttributeError, KeyError, IndexError, TypeError) as exc:
            raise ProviderUnavailable(f"Gemini returned an unexpected response shape: {exc}") from exc
        return ChatResponse(text=text, model=self._model)

    async def aclose(self) -> None:
        await self._client.aclose()
