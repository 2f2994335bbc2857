from __future__ import annotations

import pytest

from lazycat.llm.envelope import (
    MAX_OBJECT_ATTEMPTS,
    MAX_OBJECT_SCAN_CHARS,
    NOOP,
    CommandEnvelope,
    Confirmation,
    strip_wrapping,
    validate,
)
from lazycat.tools.registry import CommandDispatcher, DispatchStatus, register_browser_commands


@pytest.fixture
def anyio_backend():
    return "asyncio"


def test_fenced_json_is_unwrapped():
    raw = '```json\n{"command":"open_tab","args":{"url":"https://example.com"},"confirmation":"none"}\n```'
    envelope = validate(raw)
    assert envelope == CommandEnvelope(name="open_tab", args={"url": "https://example.com"})
    assert not envelope.is_noop


def test_strip_wrapping_handles_bare_fences():
    assert strip_wrapping('```\n{"command": "scroll"}\n```') == '{"command": "scroll"}'


def test_prose_is_noop_with_parse_error():
    envelope = validate("I cannot help with that")
    assert envelope.name == NOOP
    assert envelope.args == {}
    assert envelope.confirmation is Confirmation.NONE
    assert envelope.detail["error"].startswith("Could not parse AI output")


@pytest.mark.parametrize("raw", [None, "", "   ", "[1, 2]", '"open_tab"', '{"args": {}}', '{"command": "scroll", "args": [1]}'])
def test_malformed_output_never_raises(raw):
    assert validate(raw).is_noop


def test_json_inside_chatter_is_found():
    envelope = validate('Sure! {"command": "scroll", "args": {"direction": "up"}} Hope that helps.')
    assert envelope.name == "scroll"
    assert envelope.args == {"direction": "up"}


def test_object_search_in_chatter_is_bounded():
    braces = "{ " * (MAX_OBJECT_ATTEMPTS + 1)
    assert validate(braces + '{"command": "scroll"}').is_noop

    padding = "x" * MAX_OBJECT_SCAN_CHARS
    assert validate(padding + '{"command": "scroll"}').is_noop


def test_field_values_pass_through_unjudged():
    envelope = validate('{"command": "Teleport", "args": {"to": "mars", "count": 3, "fast": true, "note": null}}')
    assert envelope.name == "Teleport"
    assert envelope.args == {"to": "mars", "count": "3", "fast": "true"}


def test_confirmation_is_read_case_insensitively():
    envelope = validate('{"command": "open_tab", "args": {"url": "a.com"}, "confirmation": "REQUIRED"}')
    assert envelope.confirmation is Confirmation.REQUIRED
    assert envelope.to_dict()["confirmation"] == "required"


def test_missing_args_defaults_to_empty():
    assert validate('{"command": "scroll", "args": null}').args == {}


@pytest.mark.anyio("asyncio")
async def test_unparseable_output_dispatches_as_noop_not_error():
    dispatcher = CommandDispatcher()
    register_browser_commands(dispatcher)
    result = await dispatcher.dispatch(validate("I cannot help with that"))
    assert result.status is DispatchStatus.NOOP
    assert result.detail["reason"] == "unsupported_command"
    assert result.detail["command"] == NOOP
    assert "Could not parse AI output" in result.detail["error"]
