from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from lazycat.llm.command_schema import ClickUIArgs
from lazycat.llm.envelope import CommandEnvelope
from lazycat.tools.registry import (
    CommandDispatcher,
    DispatchResult,
    DispatchStatus,
    ExecutorError,
    ToolContext,
    ToolSpec,
    register_browser_commands,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


class RecordingExecutor:
    def __init__(self, response: dict[str, Any] | Exception) -> None:
        self.response = response
        self.calls: list[dict[str, Any]] = []

    async def invoke(self, message: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(message)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def build(executor: RecordingExecutor | None) -> CommandDispatcher:
    dispatcher = CommandDispatcher(lambda: ToolContext(executor=executor))
    register_browser_commands(dispatcher, timeout_s=1.0)
    return dispatcher


@pytest.mark.anyio("asyncio")
async def test_missing_required_argument_is_error_without_executor_call():
    executor = RecordingExecutor({"status": "ok"})
    result = await build(executor).dispatch(CommandEnvelope(name="click_ui", args={}))
    assert result.status is DispatchStatus.ERROR
    assert result.detail["reason"] == "missing_text"
    assert executor.calls == []


@pytest.mark.anyio("asyncio")
async def test_blank_argument_counts_as_missing():
    result = await build(RecordingExecutor({"status": "ok"})).dispatch(
        CommandEnvelope(name="search_web", args={"query": "   "})
    )
    assert result.detail["reason"] == "missing_query"


@pytest.mark.anyio("asyncio")
async def test_forwards_one_message_and_normalizes_response():
    executor = RecordingExecutor({"status": "ok", "action": "clicked", "text": "Sign in"})
    result = await build(executor).dispatch(CommandEnvelope(name="CLICK_UI", args={"text": " Sign in "}))
    assert result == DispatchResult.ok(action="clicked", text="Sign in")
    assert executor.calls == [{"command": "click_ui", "args": {"text": "Sign in"}}]


@pytest.mark.anyio("asyncio")
async def test_scroll_direction_defaults_to_down():
    executor = RecordingExecutor({"status": "ok", "action": "scrolled", "direction": "down"})
    await build(executor).dispatch(CommandEnvelope(name="scroll", args={"direction": "sideways"}))
    assert executor.calls[0]["args"] == {"direction": "down"}


@pytest.mark.anyio("asyncio")
async def test_unknown_command_is_noop_carrying_name():
    executor = RecordingExecutor({"status": "ok"})
    result = await build(executor).dispatch(CommandEnvelope(name="teleport", args={"to": "mars"}))
    assert result.status is DispatchStatus.NOOP
    assert result.detail["reason"] == "unsupported_command"
    assert result.detail["command"] == "teleport"
    assert executor.calls == []


@pytest.mark.anyio("asyncio")
async def test_unknown_command_detail_cannot_clash_with_result_fields():
    envelope = CommandEnvelope(
        name="frobnicate",
        detail={"message": "x", "command": "y", "reason": "z", "error": "parse note"},
    )
    result = await build(RecordingExecutor({"status": "ok"})).dispatch(envelope)
    assert result.status is DispatchStatus.NOOP
    assert result.detail["reason"] == "unsupported_command"
    assert result.detail["command"] == "frobnicate"
    assert result.detail["message"] == "Unsupported command: frobnicate"
    assert result.detail["error"] == "parse note"


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize(
    "failure, reason",
    [
        (httpx.ConnectError("refused"), "executor_unreachable"),
        (ExecutorError("executor_failed", "bad payload"), "executor_failed"),
        (RuntimeError("boom"), "executor_failed"),
    ],
)
async def test_executor_failures_become_error_results(failure, reason):
    executor = RecordingExecutor(failure)
    result = await build(executor).dispatch(CommandEnvelope(name="click_ui", args={"text": "OK"}))
    assert result.status is DispatchStatus.ERROR
    assert result.detail["reason"] == reason
    assert len(executor.calls) == 1


@pytest.mark.anyio("asyncio")
async def test_missing_executor_is_reported():
    result = await build(None).dispatch(CommandEnvelope(name="open_tab", args={"url": "example.com"}))
    assert result.detail["reason"] == "executor_unavailable"


@pytest.mark.anyio("asyncio")
async def test_slow_handler_times_out():
    async def slow(args: ClickUIArgs, context: ToolContext) -> DispatchResult:
        await asyncio.sleep(1.0)
        return DispatchResult.ok()

    dispatcher = CommandDispatcher()
    dispatcher.register(ToolSpec(name="click_ui", request_model=ClickUIArgs, handler=slow, timeout_s=0.05))
    result = await dispatcher.dispatch(CommandEnvelope(name="click_ui", args={"text": "OK"}))
    assert result.detail["reason"] == "executor_timeout"


def test_duplicate_registration_rejected():
    dispatcher = CommandDispatcher()
    register_browser_commands(dispatcher)
    with pytest.raises(ValueError):
        register_browser_commands(dispatcher)
    assert dispatcher.available() == ["click_ui", "open_tab", "scroll", "search_web"]


def test_from_response_normalizes_statuses():
    assert DispatchResult.from_response({"status": "noop", "reason": "x"}).status is DispatchStatus.NOOP
    weird = DispatchResult.from_response({"status": "maybe"})
    assert weird.status is DispatchStatus.ERROR
    assert weird.detail["reason"] == "executor_failed"
    failed = DispatchResult.from_response({"status": "error", "count": 2})
    assert failed.detail == {"count": "2", "reason": "executor_failed", "message": "Execution failed"}
    assert DispatchResult.from_response(None).status is DispatchStatus.ERROR
