from __future__ import annotations

import asyncio
import json
import time
from collections.abc import AsyncIterator
from typing import Any

import sounddevice as sd
from vosk import KaldiRecognizer, Model, SetLogLevel  # type: ignore[import]

from lazycat.config import ASRSettings
from lazycat.orchestrator.events import TranscriptEvent
from lazycat.telemetry.logging import get_logger
from lazycat.transcription.base import TranscriptionEngine


class VoskTranscriber(TranscriptionEngine):
    """Offline recognizer reporting n-best alternatives for every final result."""

    def __init__(self, settings: ASRSettings) -> None:
        SetLogLevel(-1)
        self._settings = settings
        self._models: dict[str, Any] = {}
        self._recognizer: Any | None = None
        self._stream: Any | None = None
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._logger = get_logger(__name__)
        self._last_partial = ""
        self.locale = settings.locale

    @property
    def active(self) -> bool:
        return self._recognizer is not None

    async def start(self, locale: str) -> None:
        if self.active:
            return
        model_path = self._settings.model_path_for(locale)
        if not model_path:
            raise ValueError(f"No Vosk model configured for locale '{locale}'")
        self._loop = asyncio.get_running_loop()
        model = self._models.get(model_path)
        if model is None:
            model = await self._loop.run_in_executor(None, Model, model_path)
            self._models[model_path] = model
        recognizer = KaldiRecognizer(model, self._settings.sample_rate)
        recognizer.SetMaxAlternatives(self._settings.max_alternatives)
        self._recognizer = recognizer
        self._queue = asyncio.Queue()
        self._last_partial = ""
        self.locale = locale
        self._open_stream()
        self._logger.info("asr.vosk.started", locale=locale, model=model_path)

    def _open_stream(self) -> None:
        blocksize = int(self._settings.sample_rate * self._settings.block_ms / 1000)

        def callback(indata, frames, time_info, status) -> None:  # type: ignore[no-untyped-def]
            if status:
                self._logger.warning("asr.audio.status", status=str(status))
            if self._loop is not None:
                self._loop.call_soon_threadsafe(self._queue.put_nowait, bytes(indata))

        self._stream = sd.RawInputStream(
            samplerate=self._settings.sample_rate,
            blocksize=blocksize,
            dtype="int16",
            channels=1,
            callback=callback,
            device=self._settings.input_device,
        )
        self._stream.start()

    async def stop(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        if self._recognizer is not None:
            self._queue.put_nowait(None)
        self._logger.info("asr.vosk.stopped")

    def reset(self) -> None:
        if self._recognizer is not None:
            self._recognizer.Reset()
        self._last_partial = ""

    def feed(self, pcm: bytes) -> None:
        """Push PCM16 mono audio that did not come from the microphone stream."""
        self._queue.put_nowait(pcm)

    async def events(self) -> AsyncIterator[TranscriptEvent]:
        try:
            while True:
                pcm = await self._queue.get()
                recognizer = self._recognizer
                if recognizer is None:
                    break
                if pcm is None:
                    event = self._final_event(recognizer.FinalResult())
                    if event is not None:
                        yield event
                    break
                if recognizer.AcceptWaveform(pcm):
                    event = self._final_event(recognizer.Result())
                else:
                    event = self._interim_event(recognizer.PartialResult())
                if event is not None:
                    yield event
        finally:
            self._recognizer = None

    def _final_event(self, payload: str) -> TranscriptEvent | None:
        data = self._decode(payload)
        self._last_partial = ""
        if "alternatives" in data:
            texts = [str(alt.get("text", "")) for alt in data.get("alternatives", [])]
        else:
            texts = [str(data.get("text", ""))]
        texts = [text.strip() for text in texts if text.strip()]
        if not texts:
            return None
        return TranscriptEvent.final(texts, ts=time.time())

    def _interim_event(self, payload: str) -> TranscriptEvent | None:
        text = str(self._decode(payload).get("partial", "")).strip()
        if not text or text == self._last_partial:
            return None
        self._last_partial = text
        return TranscriptEvent.interim(text, ts=time.time())

    def _decode(self, payload: str) -> dict[str, Any]:
        try:
            data = json.loads(payload or "{}")
        except json.JSONDecodeError:
            self._logger.debug("asr.vosk.payload.unparsable", payload=(payload or "")[:120])
            return {}
        return data if isinstance(data, dict) else {}


__all__ = ["VoskTranscriber"]
