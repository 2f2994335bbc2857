from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol
from uuid import uuid4

from lazycat.llm.envelope import CommandEnvelope, validate
from lazycat.llm.interpreter import InterpreterUnavailable
from lazycat.orchestrator.events import Arm, Dispatch, Ignore, State, TranscriptEvent, WakeEffect
from lazycat.orchestrator.wake_machine import WakeSession
from lazycat.telemetry.logging import command_context, get_logger
from lazycat.telemetry.tracing import get_tracer
from lazycat.tools.registry import DispatchResult

TIMEOUT_MESSAGE = "Wake timed out. Say 'Hey Cat' or 'Lazy Cat' again."


class InterpreterService(Protocol):
    async def interpret(self, utterance: str) -> str: ...


class CommandRouter(Protocol):
    async def dispatch(self, envelope: CommandEnvelope) -> DispatchResult: ...


class StatusBridge(Protocol):
    async def publish_state(self, state: State, payload: dict | None = None) -> None: ...


@dataclass(slots=True)
class TranscriptOutcome:
    effect: WakeEffect | None = None
    result: DispatchResult | None = None
    reset_asr: bool = False


class Orchestrator:
    """Drives transcripts through the wake session and runs dispatched utterances.

    One command runs at a time; the wake session is already back in IDLE when a
    command starts, so a slow interpreter never holds the session armed.
    """

    def __init__(
        self,
        session: WakeSession,
        interpreter: InterpreterService,
        dispatcher: CommandRouter,
        ui_bridge: StatusBridge,
    ) -> None:
        self._session = session
        self._interpreter = interpreter
        self._dispatcher = dispatcher
        self._ui = ui_bridge
        self._logger = get_logger(__name__)
        self._tracer = get_tracer(__name__)
        self._state: State = "IDLE"
        self._turn_lock = asyncio.Lock()
        self._last_result: DispatchResult | None = None
        self._session.set_on_timeout(self._on_wake_timeout)

    @property
    def state(self) -> State:
        return self._state

    @property
    def session(self) -> WakeSession:
        return self._session

    @property
    def last_result(self) -> DispatchResult | None:
        return self._last_result

    async def set_state(self, state: State, payload: dict[str, Any] | None = None) -> None:
        self._state = state
        self._logger.debug("state.transition", state=state, payload=payload)
        await self._ui.publish_state(state, payload=payload or {})

    async def handle_transcript(self, event: TranscriptEvent) -> TranscriptOutcome:
        if not event.is_final:
            text = event.alternatives[0] if event.alternatives else ""
            await self.set_state("LISTENING", {"transcript": text, "is_final": False})
            return TranscriptOutcome()

        effect = self._session.handle_final(event.alternatives)
        if isinstance(effect, Arm):
            await self.set_state(
                "ARMED",
                {"heard": effect.heard, "timeout_seconds": self._session.config.timeout_seconds},
            )
            return TranscriptOutcome(effect)
        if isinstance(effect, Dispatch):
            result = await self.run_command(effect.utterance)
            return TranscriptOutcome(effect, result, reset_asr=True)
        if isinstance(effect, Ignore):
            idle = not self._session.state.armed
            if effect.text:
                await self.set_state("LISTENING", {"transcript": effect.text, "is_final": True, "ignored": True})
            return TranscriptOutcome(effect, reset_asr=idle)
        return TranscriptOutcome(effect)

    async def run_command(self, utterance: str) -> DispatchResult:
        """Interpret, validate and dispatch one utterance; always ends with a RESULT status."""
        command_id = uuid4().hex[:12]
        async with self._turn_lock:
            with command_context(command_id=command_id):
                with self._tracer.start_as_current_span("command.run") as span:
                    span.set_attribute("command.id", command_id)
                    span.set_attribute("command.utterance", utterance)
                    await self.set_state("DISPATCHING", {"utterance": utterance})
                    try:
                        raw = await self._interpreter.interpret(utterance)
                    except InterpreterUnavailable as exc:
                        self._logger.warning("interpreter.unavailable", error=str(exc))
                        await self.set_state("WARNING", {"message": str(exc)})
                        result = DispatchResult.noop("interpreter_unavailable", message=str(exc))
                        span.set_attribute("command.name", "noop")
                    except Exception as exc:  # interpreter faults must not stop the pipeline
                        self._logger.exception("interpreter.failed", utterance=utterance)
                        result = DispatchResult.error("interpreter_failed", str(exc) or type(exc).__name__)
                        span.set_attribute("command.name", "noop")
                    else:
                        envelope = validate(raw)
                        await self.set_state("INTERPRETED", envelope.to_dict())
                        span.set_attribute("command.name", envelope.name)
                        result = await self._dispatcher.dispatch(envelope)
                    span.set_attribute("command.status", result.status.value)

                self._last_result = result
                self._logger.info("command.completed", utterance=utterance, result=result.to_dict())
                await self.set_state("RESULT", result.to_dict())
            return result

    async def stop(self) -> None:
        self._session.reset()
        await self.set_state("STOPPED")

    async def _on_wake_timeout(self) -> None:
        await self.set_state("TIMED_OUT", {"message": TIMEOUT_MESSAGE})


__all__ = ["Orchestrator", "TIMEOUT_MESSAGE", "TranscriptOutcome"]
