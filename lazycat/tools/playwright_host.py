from __future__ import annotations

from typing import Any, Literal

from playwright.async_api import BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from lazycat.config import BrowserSettings
from lazycat.telemetry.logging import get_logger
from lazycat.tools.browser import ClickOutcome, SearchOutcome

SCROLL_JS = """
(dir) => {
  const amount = window.innerHeight;
  const target = document.scrollingElement || document.body || document.documentElement;
  target.scrollBy(0, dir === "up" ? -amount : amount);
}
"""

SEARCH_JS = """
(q) => {
  const visible = (el) => !!(el && el.offsetParent !== null && !el.disabled);
  const selectors = [
    'input[type="search"]', 'input[role="searchbox"]', 'input[name*="search" i]',
    'input[id*="search" i]', 'input[aria-label*="search" i]', 'input[placeholder*="search" i]',
    '[role="search"] input', 'textarea[role="searchbox"]'
  ];
  const input =
    Array.from(document.querySelectorAll(selectors.join(","))).find(visible) ||
    Array.from(document.querySelectorAll('input[type="text"]')).find((el) =>
      visible(el) && /search|find/i.test(
        [el.placeholder, el.getAttribute("aria-label"), el.name, el.id].join(" ")));
  if (!input) return { success: false, reason: "no_input" };

  const proto = Object.getOwnPropertyDescriptor(
    input instanceof HTMLTextAreaElement ? HTMLTextAreaElement.prototype : HTMLInputElement.prototype, "value");
  proto?.set?.call(input, q);
  input.dispatchEvent(new Event("input", { bubbles: true }));
  input.dispatchEvent(new Event("change", { bubbles: true }));

  const form = input.form || input.closest("form");
  if (form && typeof form.submit === "function") {
    form.submit();
    return { success: true, method: "form" };
  }
  const btn = document.querySelector(
    'button[aria-label*="search" i], button[type="submit"], input[type="submit"]');
  if (btn) {
    btn.click();
    return { success: true, method: "button" };
  }
  for (const type of ["keydown", "keypress", "keyup"]) {
    input.dispatchEvent(new KeyboardEvent(type, { key: "Enter", keyCode: 13, which: 13, bubbles: true }));
  }
  return { success: true, method: "enter" };
}
"""

CLICK_JS = """
(needle) => {
  const isVisible = (el) => !!(el && el.offsetParent !== null);
  const wanted = needle.toLowerCase();
  const nodes = document.querySelectorAll(
    'button, a, [role="button"], [aria-label], [title], input[type="button"], input[type="submit"]');
  for (const el of nodes) {
    if (!isVisible(el)) continue;
    const labels = [el.innerText, el.value, el.getAttribute("aria-label"), el.title];
    if (labels.some((txt) => (txt || "").trim() && txt.toLowerCase().includes(wanted))) {
      el.click();
      return { success: true, clicked: (el.innerText || el.value || el.getAttribute("aria-label") || needle).trim() };
    }
  }
  return { success: false, reason: "not_found" };
}
"""

READ_TEXT_JS = """
() => {
  const main = document.querySelector("main, article, [role=main]");
  const src = main && main.innerText && main.innerText.trim() ? main : document.body;
  return src ? src.innerText : "";
}
"""

READ_SELECTION_JS = """
() => {
  const el = document.activeElement;
  if (el && (el instanceof HTMLInputElement || el instanceof HTMLTextAreaElement)) {
    return el.value.substring(el.selectionStart ?? 0, el.selectionEnd ?? 0);
  }
  return String(window.getSelection() || "");
}
"""

REPLACE_SELECTION_JS = """
(text) => {
  const el = document.activeElement;
  if (el && (el instanceof HTMLInputElement || el instanceof HTMLTextAreaElement)) {
    const start = el.selectionStart ?? 0;
    const end = el.selectionEnd ?? 0;
    if (start === end) return false;
    el.setRangeText(text, start, end, "end");
    el.dispatchEvent(new Event("input", { bubbles: true }));
    return true;
  }
  if (el && el.isContentEditable) {
    const sel = window.getSelection();
    if (!sel || sel.isCollapsed) return false;
    return document.execCommand("insertText", false, text);
  }
  return false;
}
"""


class PlaywrightPage:
    def __init__(self, page: Page) -> None:
        self._page = page

    async def scroll(self, direction: Literal["up", "down"]) -> None:
        await self._page.evaluate(SCROLL_JS, direction)

    async def search(self, query: str) -> SearchOutcome:
        result = await self._evaluate(SEARCH_JS, query)
        return SearchOutcome(bool(result.get("success")), result.get("method"), result.get("reason"))

    async def click_label(self, label: str) -> ClickOutcome:
        result = await self._evaluate(CLICK_JS, label)
        return ClickOutcome(bool(result.get("success")), result.get("clicked"), result.get("reason"))

    async def read_text(self) -> str:
        return str(await self._page.evaluate(READ_TEXT_JS) or "")

    async def read_selection(self) -> str:
        return str(await self._page.evaluate(READ_SELECTION_JS) or "")

    async def replace_selection(self, text: str) -> bool:
        return bool(await self._page.evaluate(REPLACE_SELECTION_JS, text))

    async def _evaluate(self, script: str, arg: str) -> dict[str, Any]:
        try:
            result = await self._page.evaluate(script, arg)
        except PlaywrightError as exc:
            # A form submit can navigate away before the script returns.
            if "Execution context was destroyed" in str(exc):
                return {"success": True, "method": "navigation"}
            raise
        return result if isinstance(result, dict) else {}


class PlaywrightBrowserHost:
    """Headed Chromium session; the most recently opened or focused tab is the active one."""

    def __init__(self, settings: BrowserSettings) -> None:
        self._settings = settings
        self._playwright: Playwright | None = None
        self._context: BrowserContext | None = None
        self._active: Page | None = None
        self._logger = get_logger(__name__)

    async def start(self) -> None:
        if self._context is not None:
            return
        self._playwright = await async_playwright().start()
        launch: dict[str, Any] = {"headless": self._settings.headless, "no_viewport": True}
        if self._settings.channel:
            launch["channel"] = self._settings.channel
        if self._settings.user_data_dir:
            self._context = await self._playwright.chromium.launch_persistent_context(
                self._settings.user_data_dir, **launch
            )
        else:
            browser = await self._playwright.chromium.launch(
                headless=self._settings.headless, channel=self._settings.channel
            )
            self._context = await browser.new_context(no_viewport=True)
        self._context.on("page", self._track)
        for page in self._context.pages:
            self._track(page)
        self._logger.info("browser.started", channel=self._settings.channel, headless=self._settings.headless)

    async def stop(self) -> None:
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        self._active = None
        self._logger.info("browser.stopped")

    async def open_tab(self, url: str) -> None:
        if self._context is None:
            await self.start()
        assert self._context is not None
        page = await self._context.new_page()
        await page.goto(url)
        await page.bring_to_front()
        self._active = page

    async def active_page(self) -> PlaywrightPage | None:
        if self._active is not None and not self._active.is_closed():
            return PlaywrightPage(self._active)
        if self._context is None:
            return None
        open_pages = [page for page in self._context.pages if not page.is_closed()]
        if not open_pages:
            return None
        self._active = open_pages[-1]
        return PlaywrightPage(self._active)

    def _track(self, page: Page) -> None:
        self._active = page
        page.on("close", lambda closed: self._forget(closed))

    def _forget(self, page: Page) -> None:
        if self._active is page:
            self._active = None


__all__ = ["PlaywrightBrowserHost", "PlaywrightPage"]
