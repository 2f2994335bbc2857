from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from lazycat.orchestrator.events import TranscriptEvent


class TranscriptionEngine(ABC):
    @abstractmethod
    async def start(self, locale: str) -> None:
        """Begin a recognition session for the given locale tag."""

    @abstractmethod
    async def stop(self) -> None:
        """End the current session; ``events`` stops yielding."""

    @abstractmethod
    def reset(self) -> None:
        """Drop partially recognized audio so the next result starts fresh."""

    @abstractmethod
    def events(self) -> AsyncIterator[TranscriptEvent]:
        """Yield interim and final results; finals carry the n-best alternatives."""
