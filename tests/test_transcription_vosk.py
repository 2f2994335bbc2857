from __future__ import annotations

import asyncio
import json
import sys
import types

import pytest

from lazycat.config import ASRSettings


@pytest.fixture
def anyio_backend():
    return "asyncio"


class DummyModel:
    def __init__(self, path: str) -> None:
        self.path = path


class DummyRecognizer:
    instances: list["DummyRecognizer"] = []

    def __init__(self, model: DummyModel, sample_rate: int) -> None:
        self.model = model
        self.sample_rate = sample_rate
        self.max_alternatives: int | None = None
        self.resets = 0
        DummyRecognizer.instances.append(self)

    def SetMaxAlternatives(self, count: int) -> None:
        self.max_alternatives = count

    def AcceptWaveform(self, pcm: bytes) -> bool:
        return pcm == b"final"

    def Result(self) -> str:
        return json.dumps(
            {
                "alternatives": [
                    {"text": "hey cat open the news", "confidence": 310.2},
                    {"text": "hey cut open the news", "confidence": 300.1},
                    {"text": "", "confidence": 12.0},
                ]
            }
        )

    def PartialResult(self) -> str:
        return json.dumps({"partial": "hey cat"})

    def FinalResult(self) -> str:
        return json.dumps({"text": ""})

    def Reset(self) -> None:
        self.resets += 1


class DummyStream:
    instances: list["DummyStream"] = []

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.started = False
        self.closed = False
        DummyStream.instances.append(self)

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def close(self) -> None:
        self.closed = True


def load_vosk(monkeypatch):
    vosk_module = types.ModuleType("vosk")
    vosk_module.Model = DummyModel
    vosk_module.KaldiRecognizer = DummyRecognizer
    vosk_module.SetLogLevel = lambda level: None
    sd_module = types.ModuleType("sounddevice")
    sd_module.RawInputStream = DummyStream
    monkeypatch.setitem(sys.modules, "vosk", vosk_module)
    monkeypatch.setitem(sys.modules, "sounddevice", sd_module)

    from lazycat.transcription import vosk

    monkeypatch.setattr(vosk, "Model", DummyModel)
    monkeypatch.setattr(vosk, "KaldiRecognizer", DummyRecognizer)
    monkeypatch.setattr(vosk, "SetLogLevel", lambda level: None)
    monkeypatch.setattr(vosk, "sd", sd_module)
    return vosk


@pytest.mark.anyio("asyncio")
async def test_vosk_yields_interim_then_n_best_final(monkeypatch):
    vosk = load_vosk(monkeypatch)
    transcriber = vosk.VoskTranscriber(ASRSettings(vosk_model_path="/models/en", max_alternatives=3))

    await transcriber.start("en-US")
    recognizer = DummyRecognizer.instances[-1]
    stream = DummyStream.instances[-1]
    assert recognizer.model.path == "/models/en"
    assert recognizer.max_alternatives == 3
    assert stream.started
    assert stream.kwargs["dtype"] == "int16"
    assert stream.kwargs["blocksize"] == 1600

    stream.kwargs["callback"](b"\x01\x02", 1, None, None)
    await asyncio.sleep(0)
    transcriber.feed(b"\x03\x04")
    transcriber.feed(b"final")
    await transcriber.stop()

    events = [event async for event in transcriber.events()]
    assert [event.is_final for event in events] == [False, True]
    assert events[0].alternatives == ["hey cat"]
    assert events[1].alternatives == ["hey cat open the news", "hey cut open the news"]
    assert stream.closed
    assert not transcriber.active


@pytest.mark.anyio("asyncio")
async def test_vosk_reset_clears_recognizer(monkeypatch):
    vosk = load_vosk(monkeypatch)
    transcriber = vosk.VoskTranscriber(ASRSettings(vosk_model_path="/models/en"))
    await transcriber.start("en-US")
    transcriber.reset()
    assert DummyRecognizer.instances[-1].resets == 1
    await transcriber.stop()


@pytest.mark.anyio("asyncio")
async def test_vosk_requires_model(monkeypatch):
    vosk = load_vosk(monkeypatch)
    transcriber = vosk.VoskTranscriber(ASRSettings())
    with pytest.raises(ValueError):
        await transcriber.start("en-US")
    assert not transcriber.active
