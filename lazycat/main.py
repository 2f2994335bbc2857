from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from lazycat.config import load_settings
from lazycat.llm.interpreter import CommandInterpreter, build_provider
from lazycat.orchestrator.events import TranscriptEvent
from lazycat.orchestrator.state_machine import Orchestrator, TranscriptOutcome
from lazycat.orchestrator.wake_machine import WakeConfig, WakeSession
from lazycat.telemetry.logging import configure_logging, get_logger
from lazycat.telemetry.tracing import configure_tracing, shutdown_tracing
from lazycat.tools.browser import BrowserExecutor
from lazycat.tools.executor_client import ExecutorPageContext, HttpExecutorClient, LocalExecutorClient
from lazycat.tools.playwright_host import PlaywrightBrowserHost
from lazycat.tools.registry import CommandDispatcher, DispatchResult, ToolContext, register_browser_commands
from lazycat.tools.text import LLMTextService, register_text_commands
from lazycat.transcription import VoskTranscriber
from lazycat.transcription.base import TranscriptionEngine
from lazycat.ui.websocket import StatusBridge
from lazycat.wake.phrases import Sensitivity

settings = load_settings()
configure_logging(settings.telemetry)
configure_tracing("lazycat-voice", settings.telemetry)
logger = get_logger(__name__)

app = FastAPI(title="Lazy Cat Voice")
ui_bridge = StatusBridge()

origins = {settings.ui.floating_ui_origin}
if "localhost" in settings.ui.floating_ui_origin:
    origins.add(settings.ui.floating_ui_origin.replace("localhost", "127.0.0.1"))
app.include_router(ui_bridge.router)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(origins),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)


class Runtime:
    def __init__(
        self,
        orchestrator: Orchestrator,
        transcriber: TranscriptionEngine,
        locale: str,
        closers: Sequence[Callable[[], Awaitable[None]]] = (),
    ) -> None:
        self._orchestrator = orchestrator
        self._transcriber = transcriber
        self._locale = locale
        self._closers = list(closers)
        self._transcription_task: asyncio.Task | None = None
        self._logger = get_logger(__name__)

    @property
    def listening(self) -> bool:
        return self._transcription_task is not None and not self._transcription_task.done()

    async def start_listening(self, locale: str | None = None) -> None:
        if self.listening:
            self._logger.info("listen.start.ignored", reason="already_listening")
            return
        self._locale = locale or self._locale
        await self._transcriber.start(self._locale)
        self._transcription_task = asyncio.create_task(self._transcription_loop(), name="stt-loop")
        self._logger.info("listen.started", locale=self._locale)
        await self._orchestrator.set_state("LISTENING", {"active": True, "locale": self._locale})

    async def stop_listening(self) -> None:
        task = self._transcription_task
        self._transcription_task = None
        if task is not None:
            await self._transcriber.stop()
            try:
                await asyncio.wait_for(task, timeout=2.0)
            except asyncio.TimeoutError:
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
        await self._orchestrator.stop()
        self._logger.info("listen.stopped")

    async def handle_alternatives(self, alternatives: Sequence[str]) -> TranscriptOutcome:
        outcome = await self._orchestrator.handle_transcript(TranscriptEvent.final(alternatives, ts=time.time()))
        if outcome.reset_asr and self.listening:
            self._transcriber.reset()
        return outcome

    async def run_command(self, text: str) -> DispatchResult:
        return await self._orchestrator.run_command(text)

    def set_sensitivity(self, sensitivity: Sensitivity) -> None:
        self._orchestrator.session.set_sensitivity(sensitivity)

    def status(self) -> dict[str, Any]:
        session = self._orchestrator.session
        last = self._orchestrator.last_result
        return {
            "state": self._orchestrator.state,
            "listening": self.listening,
            "locale": self._locale,
            "wake_phase": session.state.phase.value,
            "sensitivity": session.config.sensitivity.name.lower(),
            "last_result": last.to_dict() if last else None,
        }

    async def shutdown(self) -> None:
        self._logger.info("runtime.shutdown.start")
        if self.listening:
            await self.stop_listening()
        await self._orchestrator.session.aclose()
        for close in self._closers:
            await close()
        self._logger.info("runtime.shutdown.complete")

    async def _transcription_loop(self) -> None:
        try:
            async for event in self._transcriber.events():
                outcome = await self._orchestrator.handle_transcript(event)
                if outcome.reset_asr:
                    self._transcriber.reset()
        except Exception as exc:
            self._logger.error("transcription.loop.error", error=str(exc))
            await self._orchestrator.set_state("WARNING", {"message": f"Speech recognition stopped: {exc}"})
        finally:
            self._logger.info("transcription.loop.exit")


@app.on_event("startup")
async def startup_event() -> None:
    app.state.runtime = await bootstrap_runtime()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    runtime = getattr(app.state, "runtime", None)
    if runtime:
        await runtime.shutdown()
    shutdown_tracing()


def _runtime() -> Runtime:
    runtime = getattr(app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="runtime unavailable")
    return runtime


class ListenRequest(BaseModel):
    locale: str | None = None


class TranscriptRequest(BaseModel):
    alternatives: list[str] = Field(default_factory=list)


class CommandRequest(BaseModel):
    text: str = Field(min_length=1)


class SensitivityRequest(BaseModel):
    level: int = Field(ge=0, le=2)


@app.post("/listen/start")
async def listen_start(request: ListenRequest | None = None) -> dict[str, Any]:
    runtime = _runtime()
    try:
        await runtime.start_listening(request.locale if request else None)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"status": "ok", "listening": runtime.listening}


@app.post("/listen/stop")
async def listen_stop() -> dict[str, Any]:
    runtime = _runtime()
    await runtime.stop_listening()
    return {"status": "ok", "listening": runtime.listening}


@app.post("/transcript")
async def transcript(request: TranscriptRequest) -> dict[str, Any]:
    outcome = await _runtime().handle_alternatives(request.alternatives)
    effect = type(outcome.effect).__name__.lower() if outcome.effect else None
    return {
        "effect": effect,
        "result": outcome.result.to_dict() if outcome.result else None,
    }


@app.post("/command")
async def command(request: CommandRequest) -> dict[str, str]:
    result = await _runtime().run_command(request.text)
    return result.to_dict()


@app.get("/status")
async def status() -> dict[str, Any]:
    return _runtime().status()


@app.post("/settings/sensitivity")
async def set_sensitivity(request: SensitivityRequest) -> dict[str, str]:
    sensitivity = Sensitivity(request.level)
    _runtime().set_sensitivity(sensitivity)
    return {"sensitivity": sensitivity.name.lower()}


async def bootstrap_runtime() -> Runtime:
    provider = build_provider(settings.interpreter)
    interpreter = CommandInterpreter(provider)
    text_service = LLMTextService(provider)
    closers: list[Callable[[], Awaitable[None]]] = [interpreter.aclose]

    if settings.executor.url:
        executor: HttpExecutorClient | LocalExecutorClient = HttpExecutorClient(
            settings.executor.url, settings.executor.timeout_seconds
        )
    else:
        browser_host = PlaywrightBrowserHost(settings.browser)
        await browser_host.start()
        executor = LocalExecutorClient(BrowserExecutor(browser_host))
        closers.append(browser_host.stop)
    closers.append(executor.aclose)
    page = ExecutorPageContext(executor)

    def context_factory() -> ToolContext:
        return ToolContext(executor=executor, page=page, text_service=text_service)

    dispatcher = CommandDispatcher(context_factory)
    register_browser_commands(dispatcher, timeout_s=settings.executor.timeout_seconds + 5.0)
    register_text_commands(dispatcher, timeout_s=settings.interpreter.timeout_seconds * 2)

    wake = settings.wake
    session = WakeSession(
        WakeConfig(
            sensitivity=wake.sensitivity,
            prefix_window=wake.prefix_window,
            timeout_seconds=wake.timeout_seconds,
        )
    )
    orchestrator = Orchestrator(session, interpreter, dispatcher, ui_bridge)
    transcriber = VoskTranscriber(settings.asr)

    runtime = Runtime(orchestrator, transcriber, settings.asr.locale, closers)
    logger.info(
        "runtime.started",
        provider=interpreter.provider_name,
        commands=dispatcher.available(),
        executor=settings.executor.url or "in-process",
    )
    return runtime


__all__ = ["Runtime", "app", "bootstrap_runtime"]
