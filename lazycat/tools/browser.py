from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal, Protocol
from urllib.parse import quote_plus

from lazycat.llm.command_schema import (
    COMMAND_MODELS,
    ClickUIArgs,
    CommandArgsError,
    OpenTabArgs,
    ReplaceSelectionArgs,
    ScrollArgs,
    SearchWebArgs,
    parse_args,
)
from lazycat.telemetry.logging import get_logger

GOOGLE_SEARCH_URL = "https://www.google.com/search?q="


@dataclass(slots=True)
class SearchOutcome:
    success: bool
    method: str | None = None
    reason: str | None = None


@dataclass(slots=True)
class ClickOutcome:
    success: bool
    clicked: str | None = None
    reason: str | None = None


class BrowserPage(Protocol):
    async def scroll(self, direction: Literal["up", "down"]) -> None: ...

    async def search(self, query: str) -> SearchOutcome: ...

    async def click_label(self, label: str) -> ClickOutcome: ...

    async def read_text(self) -> str: ...

    async def read_selection(self) -> str: ...

    async def replace_selection(self, text: str) -> bool: ...


class BrowserHost(Protocol):
    async def open_tab(self, url: str) -> None: ...

    async def active_page(self) -> BrowserPage | None: ...


def normalize_url(raw_url: str) -> str:
    text = raw_url.strip()
    text = text.replace(" dot ", ".").replace(" slash ", "/")
    text = re.sub(r"\s+", "", text)
    if not re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", text):
        text = "https://" + text
    return text


def _error(reason: str, message: str) -> dict[str, Any]:
    return {"status": "error", "reason": reason, "message": message}


class BrowserExecutor:
    """Executes page/tab command messages against a browser host.

    Accepts ``{"command": str, "args": {...}}`` and answers ``{"status": "ok"|"noop"|"error", ...}``.
    Besides the routed commands it serves ``read_page``, ``read_selection`` and
    ``replace_selection`` for commands that run next to the interpreter.
    """

    def __init__(self, host: BrowserHost) -> None:
        self._host = host
        self._logger = get_logger(__name__)
        self._handlers = {
            "open_tab": self._open_tab,
            "scroll": self._scroll,
            "search_web": self._search_web,
            "click_ui": self._click_ui,
            "read_page": self._read_page,
            "read_selection": self._read_selection,
            "replace_selection": self._replace_selection,
        }
        self._models = {
            **COMMAND_MODELS,
            "replace_selection": ReplaceSelectionArgs,
        }

    async def execute(self, message: dict[str, Any]) -> dict[str, Any]:
        command = str(message.get("command") or "").strip().lower()
        args = message.get("args") or {}
        handler = self._handlers.get(command)
        if handler is None:
            return {"status": "noop", "reason": "unsupported_command", "message": f"Unsupported command: {command}"}
        if not isinstance(args, dict):
            return _error("invalid_args", "args must be an object")

        model = self._models.get(command)
        try:
            parsed = parse_args(command, args, model) if model else None
        except CommandArgsError as exc:
            return _error(exc.reason, exc.message)

        response = await handler(parsed)
        self._logger.info("browser.executed", command=command, status=response.get("status"))
        return response

    async def _page(self) -> BrowserPage | None:
        return await self._host.active_page()

    async def _open_tab(self, args: OpenTabArgs) -> dict[str, Any]:
        url = normalize_url(args.url)
        await self._host.open_tab(url)
        return {"status": "ok", "action": "opened_tab", "url": url}

    async def _scroll(self, args: ScrollArgs) -> dict[str, Any]:
        page = await self._page()
        if page is None:
            return _error("no_active_tab", "No active tab found")
        await page.scroll(args.direction)
        return {"status": "ok", "action": "scrolled", "direction": args.direction}

    async def _search_web(self, args: SearchWebArgs) -> dict[str, Any]:
        page = await self._page()
        if page is None:
            return _error("no_active_tab", "No active tab found")
        outcome = await page.search(args.query)
        if outcome.success:
            return {"status": "ok", "action": "search_in_page", "query": args.query, "method": outcome.method}
        url = GOOGLE_SEARCH_URL + quote_plus(args.query)
        await self._host.open_tab(url)
        return {"status": "ok", "action": "search_google_fallback", "query": args.query, "url": url}

    async def _click_ui(self, args: ClickUIArgs) -> dict[str, Any]:
        page = await self._page()
        if page is None:
            return _error("no_active_tab", "No active tab found")
        outcome = await page.click_label(args.text)
        if not outcome.success:
            return _error(outcome.reason or "not_found", "No matching element found")
        return {"status": "ok", "action": "clicked", "text": outcome.clicked or args.text}

    async def _read_page(self, _: None) -> dict[str, Any]:
        page = await self._page()
        if page is None:
            return _error("no_active_tab", "No active tab found")
        return {"status": "ok", "action": "read_page", "text": await page.read_text()}

    async def _read_selection(self, _: None) -> dict[str, Any]:
        page = await self._page()
        if page is None:
            return _error("no_active_tab", "No active tab found")
        return {"status": "ok", "action": "read_selection", "text": await page.read_selection()}

    async def _replace_selection(self, args: ReplaceSelectionArgs) -> dict[str, Any]:
        page = await self._page()
        if page is None:
            return _error("no_active_tab", "No active tab found")
        if not await page.replace_selection(args.text):
            return _error("no_editable_target", "No focused editable field with a selection")
        return {"status": "ok", "action": "replaced_selection", "chars": len(args.text)}


__all__ = [
    "BrowserExecutor",
    "BrowserHost",
    "BrowserPage",
    "ClickOutcome",
    "GOOGLE_SEARCH_URL",
    "SearchOutcome",
    "normalize_url",
]
