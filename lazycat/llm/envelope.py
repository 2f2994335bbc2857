from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from lazycat.telemetry.logging import get_logger

LOGGER = get_logger(__name__)

NOOP = "noop"

_FENCE = re.compile(r"```[a-zA-Z0-9_-]*")
# Object starts searched for in chatty replies.
MAX_OBJECT_SCAN_CHARS = 2000
MAX_OBJECT_ATTEMPTS = 16


class Confirmation(str, Enum):
    NONE = "none"
    REQUIRED = "required"


@dataclass(frozen=True, slots=True)
class CommandEnvelope:
    name: str
    args: dict[str, str] = field(default_factory=dict)
    confirmation: Confirmation = Confirmation.NONE
    detail: dict[str, str] = field(default_factory=dict)

    @classmethod
    def noop(cls, error: str) -> "CommandEnvelope":
        return cls(name=NOOP, detail={"error": error})

    @property
    def is_noop(self) -> bool:
        return self.name == NOOP

    def to_message(self) -> dict[str, Any]:
        return {"command": self.name, "args": dict(self.args)}

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": self.name,
            "args": dict(self.args),
            "confirmation": self.confirmation.value,
            "detail": dict(self.detail),
        }


class _RawCommand(BaseModel):
    """Structural shape of the interpreter's JSON; field values are not judged here."""

    model_config = ConfigDict(extra="ignore")

    command: str
    args: dict[str, Any] = {}
    confirmation: Confirmation = Confirmation.NONE

    @field_validator("args", mode="before")
    @classmethod
    def none_args(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("confirmation", mode="before")
    @classmethod
    def lower_confirmation(cls, value: Any) -> Any:
        if value is None:
            return Confirmation.NONE
        return value.strip().lower() if isinstance(value, str) else value


def strip_wrapping(raw: str) -> str:
    """Remove markdown code fences the interpreter sometimes wraps its JSON in."""
    return _FENCE.sub("", raw).strip()


def _load_object(text: str) -> dict[str, Any]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        payload = _first_object(text)
        if payload is None:
            raise
    if not isinstance(payload, dict):
        raise TypeError(f"expected a JSON object, got {type(payload).__name__}")
    return payload


def _first_object(text: str) -> dict[str, Any] | None:
    decoder = json.JSONDecoder()
    attempts = 0
    for index, char in enumerate(text[:MAX_OBJECT_SCAN_CHARS]):
        if char != "{":
            continue
        attempts += 1
        if attempts > MAX_OBJECT_ATTEMPTS:
            break
        try:
            payload, _ = decoder.raw_decode(text[index:])
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            return payload
    return None


def _stringify(args: dict[str, Any]) -> dict[str, str]:
    clean: dict[str, str] = {}
    for key, value in args.items():
        if value is None:
            continue
        if isinstance(value, (dict, list)):
            clean[str(key)] = json.dumps(value, ensure_ascii=False)
        elif isinstance(value, bool):
            clean[str(key)] = "true" if value else "false"
        else:
            clean[str(key)] = str(value)
    return clean


def validate(raw: str | None) -> CommandEnvelope:
    """Turn interpreter output into a CommandEnvelope; never raises.

    Anything that is not a JSON object of shape ``{command, args, confirmation}``
    becomes the ``noop`` envelope carrying the parse error in ``detail["error"]``.
    """
    if raw is None or not str(raw).strip():
        LOGGER.warning("envelope.parse_failed", error="empty response")
        return CommandEnvelope.noop("Could not parse AI output: empty response")

    cleaned = strip_wrapping(str(raw))
    try:
        payload = _load_object(cleaned)
        parsed = _RawCommand.model_validate(payload)
    except (json.JSONDecodeError, TypeError, ValidationError) as exc:
        LOGGER.warning("envelope.parse_failed", error=str(exc), raw=cleaned[:200])
        return CommandEnvelope.noop(f"Could not parse AI output: {exc}")

    envelope = CommandEnvelope(
        name=parsed.command.strip(),
        args=_stringify(parsed.args),
        confirmation=parsed.confirmation,
    )
    LOGGER.debug("envelope.parsed", envelope=envelope.to_dict())
    return envelope


__all__ = [
    "MAX_OBJECT_ATTEMPTS",
    "MAX_OBJECT_SCAN_CHARS",
    "NOOP",
    "CommandEnvelope",
    "Confirmation",
    "strip_wrapping",
    "validate",
]
