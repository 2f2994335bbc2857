from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Literal


@dataclass(frozen=True, slots=True)
class Hypothesis:
    text: str
    is_final: bool = False


@dataclass(frozen=True, slots=True)
class TranscriptEvent:
    """One ASR result: the engine's ranked alternatives for the same time window (rank 0 first)."""

    hypotheses: tuple[Hypothesis, ...]
    ts: float = 0.0

    @classmethod
    def final(cls, alternatives: Sequence[str], ts: float = 0.0) -> "TranscriptEvent":
        return cls(tuple(Hypothesis(text, True) for text in alternatives), ts)

    @classmethod
    def interim(cls, text: str, ts: float = 0.0) -> "TranscriptEvent":
        return cls((Hypothesis(text, False),), ts)

    @property
    def is_final(self) -> bool:
        return bool(self.hypotheses) and all(h.is_final for h in self.hypotheses)

    @property
    def alternatives(self) -> list[str]:
        return [h.text for h in self.hypotheses]


@dataclass(frozen=True, slots=True)
class WakeMatch:
    start_index: int
    matched_variant: str

    @property
    def end_index(self) -> int:
        return self.start_index + len(self.matched_variant)


class WakePhase(str, Enum):
    IDLE = "idle"
    ARMED = "armed"


@dataclass(frozen=True, slots=True)
class WakeSessionState:
    phase: WakePhase = WakePhase.IDLE

    @property
    def armed(self) -> bool:
        return self.phase is WakePhase.ARMED


# State machine inputs.
@dataclass(frozen=True, slots=True)
class FinalTranscript:
    alternatives: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ArmTimeout:
    pass


WakeInput = FinalTranscript | ArmTimeout


# State machine effects.
@dataclass(frozen=True, slots=True)
class Arm:
    heard: str = ""


@dataclass(frozen=True, slots=True)
class Dispatch:
    utterance: str


@dataclass(frozen=True, slots=True)
class Ignore:
    text: str = ""


@dataclass(frozen=True, slots=True)
class TimedOut:
    pass


WakeEffect = Arm | Dispatch | Ignore | TimedOut


State = Literal[
    "IDLE",
    "LISTENING",
    "ARMED",
    "TIMED_OUT",
    "DISPATCHING",
    "INTERPRETED",
    "RESULT",
    "WARNING",
    "STOPPED",
]


__all__ = [
    "Hypothesis",
    "TranscriptEvent",
    "WakeMatch",
    "WakePhase",
    "WakeSessionState",
    "FinalTranscript",
    "ArmTimeout",
    "WakeInput",
    "Arm",
    "Dispatch",
    "Ignore",
    "TimedOut",
    "WakeEffect",
    "State",
]
