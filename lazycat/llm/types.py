from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

Availability = Literal["available", "unavailable"]


class ProviderUnavailable(RuntimeError):
    """The chat provider cannot serve requests (not installed, unreachable, not configured)."""


@dataclass(slots=True)
class ChatResponse:
    text: str
    model: str | None = None


class ChatProvider:
    name: str

    async def availability(self) -> Availability:
        raise NotImplementedError

    async def chat(
        self,
        prompt: str,
        *,
        system: str | None = None,
        response_schema: dict[str, Any] | None = None,
    ) -> ChatResponse:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


__all__ = ["Availability", "ChatProvider", "ChatResponse", "ProviderUnavailable"]
