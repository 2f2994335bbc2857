from __future__ import annotations

import asyncio
import sys
import types

import pytest
from fastapi.testclient import TestClient

from lazycat.llm.envelope import CommandEnvelope
from lazycat.orchestrator.events import TranscriptEvent
from lazycat.orchestrator.state_machine import Orchestrator
from lazycat.orchestrator.wake_machine import WakeConfig, WakeSession
from lazycat.tools.registry import DispatchResult
from lazycat.transcription.base import TranscriptionEngine


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def main_module(monkeypatch):
    vosk_module = types.ModuleType("vosk")
    vosk_module.Model = object
    vosk_module.KaldiRecognizer = object
    vosk_module.SetLogLevel = lambda level: None
    sd_module = types.ModuleType("sounddevice")
    sd_module.RawInputStream = object
    monkeypatch.setitem(sys.modules, "vosk", vosk_module)
    monkeypatch.setitem(sys.modules, "sounddevice", sd_module)

    from lazycat import main

    yield main
    if hasattr(main.app.state, "runtime"):
        del main.app.state.runtime


class FakeTranscriber(TranscriptionEngine):
    def __init__(self) -> None:
        self.queue: asyncio.Queue[TranscriptEvent | None] | None = None
        self.locales: list[str] = []
        self.resets = 0

    async def start(self, locale: str) -> None:
        self.locales.append(locale)
        self.queue = asyncio.Queue()

    async def stop(self) -> None:
        if self.queue is not None:
            self.queue.put_nowait(None)

    def reset(self) -> None:
        self.resets += 1

    async def events(self):
        assert self.queue is not None
        while True:
            event = await self.queue.get()
            if event is None:
                return
            yield event


class StubInterpreter:
    def __init__(self) -> None:
        self.utterances: list[str] = []

    async def interpret(self, utterance: str) -> str:
        self.utterances.append(utterance)
        return '{"command": "scroll", "args": {"direction": "down"}, "confirmation": "none"}'


class StubDispatcher:
    async def dispatch(self, envelope: CommandEnvelope) -> DispatchResult:
        return DispatchResult.ok(action="scrolled", direction=envelope.args.get("direction", "down"))


class RecordingBridge:
    def __init__(self) -> None:
        self.states: list[str] = []

    async def publish_state(self, state, payload=None):
        self.states.append(state)


def make_runtime(main, closers=()):
    interpreter = StubInterpreter()
    bridge = RecordingBridge()
    orchestrator = Orchestrator(WakeSession(WakeConfig()), interpreter, StubDispatcher(), bridge)
    transcriber = FakeTranscriber()
    runtime = main.Runtime(orchestrator, transcriber, "en-US", closers)
    return runtime, transcriber, interpreter, bridge


def test_endpoints_need_runtime(main_module):
    client = TestClient(main_module.app)
    assert client.get("/status").status_code == 503


def test_transcript_and_command_endpoints(main_module):
    runtime, _, interpreter, _ = make_runtime(main_module)
    main_module.app.state.runtime = runtime
    client = TestClient(main_module.app)

    response = client.post("/transcript", json={"alternatives": ["hey cat scroll down", "hey cut scroll down"]})
    assert response.json() == {
        "effect": "dispatch",
        "result": {"status": "ok", "action": "scrolled", "direction": "down"},
    }
    ignored = client.post("/transcript", json={"alternatives": ["scroll down please"]}).json()
    assert ignored == {"effect": "ignore", "result": None}

    assert client.post("/command", json={"text": "scroll down"}).json()["status"] == "ok"
    assert interpreter.utterances == ["scroll down", "scroll down"]

    status = client.get("/status").json()
    assert status["wake_phase"] == "idle"
    assert status["listening"] is False
    assert status["last_result"]["action"] == "scrolled"


def test_sensitivity_endpoint(main_module):
    runtime, _, _, _ = make_runtime(main_module)
    main_module.app.state.runtime = runtime
    client = TestClient(main_module.app)

    assert client.post("/settings/sensitivity", json={"level": 2}).json() == {"sensitivity": "loose"}
    assert client.get("/status").json()["sensitivity"] == "loose"
    assert client.post("/settings/sensitivity", json={"level": 7}).status_code == 422


@pytest.mark.anyio("asyncio")
async def test_listening_loop_dispatches_and_resets_asr(main_module):
    runtime, transcriber, interpreter, bridge = make_runtime(main_module)

    await runtime.start_listening("en-GB")
    assert runtime.listening
    assert transcriber.locales == ["en-GB"]

    transcriber.queue.put_nowait(TranscriptEvent.interim("hey cat"))
    transcriber.queue.put_nowait(TranscriptEvent.final(["hey cat scroll down"]))
    transcriber.queue.put_nowait(TranscriptEvent.final(["thanks"]))
    await asyncio.sleep(0.05)

    assert interpreter.utterances == ["scroll down"]
    assert transcriber.resets == 2

    await runtime.stop_listening()
    assert not runtime.listening
    assert bridge.states[0] == "LISTENING"
    assert bridge.states[-1] == "STOPPED"


@pytest.mark.anyio("asyncio")
async def test_shutdown_runs_closers(main_module):
    closed: list[str] = []

    async def close_executor() -> None:
        closed.append("executor")

    runtime, _, _, _ = make_runtime(main_module, closers=[close_executor])
    await runtime.start_listening()
    await runtime.shutdown()
    assert closed == ["executor"]
    assert not runtime.listening
