from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from lazycat.llm.envelope import CommandEnvelope
from lazycat.tools.browser import BrowserExecutor, ClickOutcome, SearchOutcome
from lazycat.tools.executor_client import ExecutorPageContext, HttpExecutorClient, LocalExecutorClient
from lazycat.tools.executor_service import create_app
from lazycat.tools.registry import (
    CommandDispatcher,
    DispatchStatus,
    ExecutorError,
    ToolContext,
    register_browser_commands,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakePage:
    def __init__(self) -> None:
        self.selection = "hello"
        self.replaced: list[str] = []

    async def scroll(self, direction):
        return None

    async def search(self, query):
        return SearchOutcome(True, "enter")

    async def click_label(self, label):
        return ClickOutcome(False, reason="not_found")

    async def read_text(self):
        return "page body"

    async def read_selection(self):
        return self.selection

    async def replace_selection(self, text):
        self.replaced.append(text)
        return True


class FakeHost:
    def __init__(self, page: FakePage | None) -> None:
        self.page = page
        self.opened: list[str] = []

    async def open_tab(self, url):
        self.opened.append(url)

    async def active_page(self):
        return self.page


def test_execute_endpoint_round_trip():
    host = FakeHost(FakePage())
    client = TestClient(create_app(BrowserExecutor(host)))

    response = client.post("/execute", json={"command": "open_tab", "args": {"url": "example.com"}})
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "action": "opened_tab", "url": "https://example.com"}
    assert host.opened == ["https://example.com"]

    assert client.post("/execute", json={"command": "fly"}).json()["status"] == "noop"
    assert client.get("/health").json() == {"status": "ok"}


@pytest.mark.anyio("asyncio")
async def test_http_client_dispatch_through_service():
    app = create_app(BrowserExecutor(FakeHost(FakePage())))
    client = HttpExecutorClient("http://executor.test", transport=httpx.ASGITransport(app=app))
    dispatcher = CommandDispatcher(lambda: ToolContext(executor=client))
    register_browser_commands(dispatcher)

    result = await dispatcher.dispatch(CommandEnvelope(name="click_ui", args={"text": "Checkout"}))
    await client.aclose()

    assert result.status is DispatchStatus.ERROR
    assert result.detail == {"reason": "not_found", "message": "No matching element found"}


@pytest.mark.anyio("asyncio")
async def test_http_client_rejects_non_object_response():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=["ok"]))
    client = HttpExecutorClient("http://executor.test", transport=transport)
    with pytest.raises(ExecutorError):
        await client.invoke({"command": "scroll", "args": {}})
    await client.aclose()


@pytest.mark.anyio("asyncio")
async def test_http_client_surfaces_server_errors():
    transport = httpx.MockTransport(lambda request: httpx.Response(502))
    client = HttpExecutorClient("http://executor.test", transport=transport)
    dispatcher = CommandDispatcher(lambda: ToolContext(executor=client))
    register_browser_commands(dispatcher)
    result = await dispatcher.dispatch(CommandEnvelope(name="scroll"))
    await client.aclose()
    assert result.detail["reason"] == "executor_unreachable"


@pytest.mark.anyio("asyncio")
async def test_page_context_reads_through_local_executor():
    page = FakePage()
    context = ExecutorPageContext(LocalExecutorClient(BrowserExecutor(FakeHost(page))))

    assert await context.page_text() == "page body"
    assert await context.selected_text() == "hello"
    replaced = await context.replace_selection("HELLO")
    assert replaced.status is DispatchStatus.OK
    assert page.replaced == ["HELLO"]


@pytest.mark.anyio("asyncio")
async def test_page_context_without_tab_raises():
    context = ExecutorPageContext(LocalExecutorClient(BrowserExecutor(FakeHost(None))))
    with pytest.raises(ExecutorError) as excinfo:
        await context.page_text()
    assert excinfo.value.reason == "no_active_tab"
