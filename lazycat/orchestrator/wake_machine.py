from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from lazycat.orchestrator.events import (
    Arm,
    ArmTimeout,
    Dispatch,
    FinalTranscript,
    Ignore,
    TimedOut,
    WakeEffect,
    WakeInput,
    WakePhase,
    WakeSessionState,
)
from lazycat.telemetry.logging import get_logger
from lazycat.wake.detector import DEFAULT_PREFIX_WINDOW, strip_after_wake
from lazycat.wake.hypothesis import select_hypothesis, usable_alternatives
from lazycat.wake.phrases import DEFAULT_WAKE_PHRASES, Sensitivity, WakePhraseSet

IDLE = WakeSessionState(WakePhase.IDLE)
ARMED = WakeSessionState(WakePhase.ARMED)


@dataclass(frozen=True, slots=True)
class WakeConfig:
    phrases: WakePhraseSet = DEFAULT_WAKE_PHRASES
    sensitivity: Sensitivity = Sensitivity.DEFAULT
    prefix_window: int = DEFAULT_PREFIX_WINDOW
    timeout_seconds: float = 5.0


def transition(
    state: WakeSessionState,
    event: WakeInput,
    config: WakeConfig = WakeConfig(),
) -> tuple[WakeSessionState, WakeEffect]:
    """Pure wake/listen transition: ``(state, event) -> (new_state, effect)``."""
    if isinstance(event, ArmTimeout):
        if state.armed:
            return IDLE, TimedOut()
        return state, Ignore()

    if not usable_alternatives(event.alternatives):
        return state, Ignore()

    chosen = select_hypothesis(
        event.alternatives,
        config.sensitivity,
        config.phrases,
        prefix_window=config.prefix_window,
    )
    remainder = strip_after_wake(
        chosen,
        config.phrases,
        config.sensitivity,
        prefix_window=config.prefix_window,
    )
    if remainder:
        return IDLE, Dispatch(remainder)
    if remainder is not None:
        return ARMED, Arm(heard=chosen)
    if state.armed:
        return IDLE, Dispatch(chosen)
    return IDLE, Ignore(chosen)


TimeoutListener = Callable[[], Awaitable[None]]


class WakeSession:
    """Owns the single mutable wake state and its arm-timeout.

    Invariant: after any call returns, the timer is pending iff the phase is ARMED.
    """

    def __init__(self, config: WakeConfig | None = None, on_timeout: TimeoutListener | None = None) -> None:
        self._config = config or WakeConfig()
        self._on_timeout = on_timeout
        self._state = IDLE
        self._timer: asyncio.TimerHandle | None = None
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()
        self._logger = get_logger(__name__)

    @property
    def state(self) -> WakeSessionState:
        return self._state

    @property
    def config(self) -> WakeConfig:
        return self._config

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    def set_on_timeout(self, listener: TimeoutListener | None) -> None:
        self._on_timeout = listener

    def set_sensitivity(self, sensitivity: Sensitivity) -> None:
        self._config = WakeConfig(
            phrases=self._config.phrases,
            sensitivity=sensitivity,
            prefix_window=self._config.prefix_window,
            timeout_seconds=self._config.timeout_seconds,
        )
        self._logger.info("wake.sensitivity.set", sensitivity=sensitivity.name.lower())

    def handle_final(self, alternatives: Sequence[str]) -> WakeEffect:
        previous = self._state
        new_state, effect = transition(previous, FinalTranscript(tuple(alternatives)), self._config)
        if isinstance(effect, Arm):
            self._arm_timer()
        elif not new_state.armed:
            self._cancel_timer()
        self._state = new_state
        self._log_effect(previous, effect)
        return effect

    def reset(self) -> None:
        self._cancel_timer()
        self._state = IDLE

    async def aclose(self) -> None:
        self.reset()
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    def _arm_timer(self) -> None:
        self._cancel_timer()
        self._generation += 1
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._config.timeout_seconds, self._fire_timeout, self._generation)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire_timeout(self, generation: int) -> None:
        # A transcript may have re-armed or dispatched after this callback was scheduled.
        if generation != self._generation or not self._state.armed:
            return
        self._timer = None
        self._state, effect = transition(self._state, ArmTimeout(), self._config)
        self._logger.info("wake.timeout", seconds=self._config.timeout_seconds)
        if isinstance(effect, TimedOut) and self._on_timeout is not None:
            task = asyncio.get_running_loop().create_task(self._on_timeout(), name="wake-timeout")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def _log_effect(self, previous: WakeSessionState, effect: WakeEffect) -> None:
        if isinstance(effect, Dispatch):
            self._logger.info("wake.dispatch", utterance=effect.utterance, from_phase=previous.phase.value)
        elif isinstance(effect, Arm):
            self._logger.info("wake.armed", heard=effect.heard, timeout=self._config.timeout_seconds)
        elif isinstance(effect, Ignore):
            self._logger.debug("wake.ignored", text=effect.text, phase=self._state.phase.value)


__all__ = ["ARMED", "IDLE", "WakeConfig", "WakeSession", "transition"]
