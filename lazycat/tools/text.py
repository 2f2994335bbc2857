from __future__ import annotations

from lazycat.llm.command_schema import COMMAND_MODELS, RewriteSelectionArgs, SummarizeArgs
from lazycat.llm.types import ChatProvider, ProviderUnavailable
from lazycat.telemetry.logging import get_logger
from lazycat.tools.registry import (
    CommandDispatcher,
    DispatchResult,
    DispatchStatus,
    ToolContext,
    ToolSpec,
)

LOGGER = get_logger(__name__)

# Long pages are cut before they reach the summarizer.
MAX_SOURCE_CHARS = 12_000

SUMMARY_SYSTEM_PROMPT = (
    "You summarize web content for a voice assistant. "
    "Reply with a short plain-text summary of at most five sentences. No markdown, no preamble."
)

REWRITE_SYSTEM_PROMPT = (
    "You rewrite text exactly as instructed. "
    "Reply with the rewritten text only, without quotes, commentary or markdown."
)


class TextServiceUnavailable(RuntimeError):
    """The summarization or rewriting service cannot produce text."""


class LLMTextService:
    """Summarizer and rewriter backed by a chat provider."""

    def __init__(self, provider: ChatProvider) -> None:
        self._provider = provider

    async def summarize(self, text: str) -> str:
        return await self._complete(f"Summarize the following text:\n\n{text}", SUMMARY_SYSTEM_PROMPT)

    async def rewrite(self, text: str, instruction: str) -> str:
        prompt = f"Instruction: {instruction}\n\nText:\n{text}"
        return await self._complete(prompt, REWRITE_SYSTEM_PROMPT)

    async def _complete(self, prompt: str, system: str) -> str:
        if await self._provider.availability() == "unavailable":
            raise TextServiceUnavailable(f"'{self._provider.name}' is unavailable")
        try:
            response = await self._provider.chat(prompt, system=system)
        except ProviderUnavailable as exc:
            raise TextServiceUnavailable(str(exc)) from exc
        text = response.text.strip()
        if not text:
            raise TextServiceUnavailable(f"'{self._provider.name}' returned no text")
        return text


async def summarize(args: SummarizeArgs, context: ToolContext) -> DispatchResult:
    if context.page is None:
        return DispatchResult.error("no_active_tab", "No page context available")
    if context.text_service is None:
        return DispatchResult.error("summarizer_unavailable", "Summarizer is not configured")

    if args.scope == "selection":
        source = (await context.page.selected_text()).strip()
        if not source:
            return DispatchResult.error("no_selection", "Nothing is selected")
    else:
        source = (await context.page.page_text()).strip()
        if not source:
            return DispatchResult.error("no_text", "The page has no readable text")

    truncated = len(source) > MAX_SOURCE_CHARS
    try:
        summary = await context.text_service.summarize(source[:MAX_SOURCE_CHARS])
    except TextServiceUnavailable as exc:
        LOGGER.warning("summarize.unavailable", error=str(exc))
        return DispatchResult.error("summarizer_unavailable", str(exc))
    return DispatchResult.ok(
        action="summarized",
        scope=args.scope,
        summary=summary,
        source_chars=len(source),
        truncated=str(truncated).lower(),
    )


async def rewrite_selection(args: RewriteSelectionArgs, context: ToolContext) -> DispatchResult:
    if context.page is None:
        return DispatchResult.error("no_active_tab", "No page context available")
    if context.text_service is None:
        return DispatchResult.error("rewriter_unavailable", "Rewriter is not configured")

    selection = (await context.page.selected_text()).strip()
    if not selection:
        return DispatchResult.error("no_selection", "Nothing is selected")
    try:
        rewritten = await context.text_service.rewrite(selection, args.instruction)
    except TextServiceUnavailable as exc:
        LOGGER.warning("rewrite.unavailable", error=str(exc))
        return DispatchResult.error("rewriter_unavailable", str(exc))

    replaced = await context.page.replace_selection(rewritten)
    if replaced.status is not DispatchStatus.OK:
        return replaced
    return DispatchResult.ok(
        action="rewrote_selection",
        instruction=args.instruction,
        original=selection,
        text=rewritten,
    )


def register_text_commands(dispatcher: CommandDispatcher, timeout_s: float = 60.0) -> None:
    dispatcher.register(
        ToolSpec(
            name="summarize",
            request_model=COMMAND_MODELS["summarize"],
            handler=summarize,
            timeout_s=timeout_s,
            local=True,
        )
    )
    dispatcher.register(
        ToolSpec(
            name="rewrite_selection",
            request_model=COMMAND_MODELS["rewrite_selection"],
            handler=rewrite_selection,
            timeout_s=timeout_s,
            local=True,
        )
    )


__all__ = [
    "LLMTextService",
    "TextServiceUnavailable",
    "register_text_commands",
    "rewrite_selection",
    "summarize",
]
