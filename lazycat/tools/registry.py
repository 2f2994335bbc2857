from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import httpx

from lazycat.llm.command_schema import (
    COMMAND_MODELS,
    CommandArgs,
    CommandArgsError,
    parse_args,
)
from lazycat.llm.envelope import CommandEnvelope
from lazycat.telemetry.logging import get_logger


class DispatchStatus(str, Enum):
    OK = "ok"
    NOOP = "noop"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class DispatchResult:
    status: DispatchStatus
    detail: dict[str, str] = field(default_factory=dict)

    @classmethod
    def ok(cls, **detail: Any) -> "DispatchResult":
        return cls(DispatchStatus.OK, _stringify(detail))

    @classmethod
    def noop(cls, reason: str, **detail: Any) -> "DispatchResult":
        return cls(DispatchStatus.NOOP, _stringify({"reason": reason, **detail}))

    @classmethod
    def error(cls, reason: str, message: str, **detail: Any) -> "DispatchResult":
        return cls(DispatchStatus.ERROR, _stringify({"reason": reason, "message": message, **detail}))

    @classmethod
    def from_response(cls, message: Mapping[str, Any] | None) -> "DispatchResult":
        """Normalize an executor message ``{status, ...detail}``; unknown statuses are errors."""
        if not isinstance(message, Mapping):
            return cls.error("executor_failed", "Executor returned no response")
        detail = {key: value for key, value in message.items() if key != "status"}
        raw_status = str(message.get("status", "")).strip().lower()
        try:
            status = DispatchStatus(raw_status)
        except ValueError:
            detail.setdefault("reason", "executor_failed")
            detail.setdefault("message", f"Unexpected executor status {raw_status!r}")
            status = DispatchStatus.ERROR
        if status is DispatchStatus.ERROR:
            detail.setdefault("reason", "executor_failed")
            detail.setdefault("message", "Execution failed")
        return cls(status, _stringify(detail))

    def to_dict(self) -> dict[str, str]:
        return {"status": self.status.value, **self.detail}


def _stringify(detail: Mapping[str, Any]) -> dict[str, str]:
    return {str(key): str(value) for key, value in detail.items() if value is not None}


class ExecutorError(Exception):
    """Raised when an executor cannot be reached or gives an unusable answer."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


class ExecutorClient(Protocol):
    async def invoke(self, message: dict[str, Any]) -> dict[str, Any]: ...


class PageContext(Protocol):
    async def page_text(self) -> str: ...

    async def selected_text(self) -> str: ...

    async def replace_selection(self, text: str) -> DispatchResult: ...


class TextService(Protocol):
    async def summarize(self, text: str) -> str: ...

    async def rewrite(self, text: str, instruction: str) -> str: ...


@dataclass(slots=True)
class ToolContext:
    executor: ExecutorClient | None = None
    page: PageContext | None = None
    text_service: TextService | None = None
    extras: dict[str, Any] = field(default_factory=dict)


Handler = Callable[[CommandArgs, ToolContext], Awaitable[DispatchResult]]


@dataclass(slots=True)
class ToolSpec:
    name: str
    request_model: type[CommandArgs]
    handler: Handler
    timeout_s: float = 15.0
    local: bool = False


class CommandDispatcher:
    """Routes a validated envelope to exactly one executor and normalizes the outcome.

    Never raises: unknown names become ``noop``, argument and executor failures become
    ``error``. No retries.
    """

    def __init__(self, context_factory: Callable[[], ToolContext] | None = None) -> None:
        self._specs: dict[str, ToolSpec] = {}
        self._context_factory = context_factory or ToolContext
        self._logger = get_logger(__name__)

    def register(self, spec: ToolSpec) -> None:
        name = spec.name.lower()
        if name in self._specs:
            raise ValueError(f"Command '{spec.name}' already registered")
        self._specs[name] = spec
        self._logger.info("dispatcher.registered", command=name, local=spec.local)

    def available(self) -> list[str]:
        return sorted(self._specs.keys())

    async def dispatch(self, envelope: CommandEnvelope) -> DispatchResult:
        name = envelope.name.strip().lower()
        spec = self._specs.get(name)
        if spec is None:
            self._logger.info("dispatcher.unsupported", command=envelope.name)
            detail = {
                **envelope.detail,
                "command": envelope.name,
                "message": f"Unsupported command: {envelope.name}",
            }
            detail.pop("reason", None)
            return DispatchResult.noop("unsupported_command", **detail)

        try:
            args = parse_args(name, envelope.args, spec.request_model)
        except CommandArgsError as exc:
            self._logger.info("dispatcher.invalid_args", command=name, reason=exc.reason)
            return DispatchResult.error(exc.reason, exc.message, command=name)

        context = self._context_factory()
        self._logger.info(
            "dispatcher.invoke",
            command=name,
            local=spec.local,
            args=args.model_dump(),
            confirmation=envelope.confirmation.value,
        )
        try:
            result = await asyncio.wait_for(spec.handler(args, context), timeout=spec.timeout_s)
        except asyncio.TimeoutError:
            result = DispatchResult.error("executor_timeout", f"'{name}' timed out after {spec.timeout_s}s", command=name)
        except ExecutorError as exc:
            result = DispatchResult.error(exc.reason, exc.message, command=name)
        except httpx.HTTPError as exc:
            result = DispatchResult.error("executor_unreachable", f"Executor request failed: {exc}", command=name)
        except Exception as exc:  # executor faults must not stop the pipeline
            self._logger.exception("dispatcher.handler.failed", command=name)
            result = DispatchResult.error("executor_failed", str(exc) or type(exc).__name__, command=name)

        self._logger.info("dispatcher.result", command=name, status=result.status.value, detail=result.detail)
        return result


def forward_to_executor(command: str) -> Handler:
    """Handler that forwards the command as a message to the out-of-process executor."""

    async def _forward(args: CommandArgs, context: ToolContext) -> DispatchResult:
        if context.executor is None:
            raise ExecutorError("executor_unavailable", "No page executor is connected")
        response = await context.executor.invoke({"command": command, "args": args.model_dump()})
        return DispatchResult.from_response(response)

    return _forward


def register_browser_commands(dispatcher: CommandDispatcher, timeout_s: float = 15.0) -> None:
    for name in ("open_tab", "scroll", "search_web", "click_ui"):
        dispatcher.register(
            ToolSpec(
                name=name,
                request_model=COMMAND_MODELS[name],
                handler=forward_to_executor(name),
                timeout_s=timeout_s,
            )
        )


__all__ = [
    "CommandDispatcher",
    "DispatchResult",
    "DispatchStatus",
    "ExecutorClient",
    "ExecutorError",
    "PageContext",
    "TextService",
    "ToolContext",
    "ToolSpec",
    "forward_to_executor",
    "register_browser_commands",
]
