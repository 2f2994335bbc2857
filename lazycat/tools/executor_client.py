from __future__ import annotations

from typing import Any, Protocol

import httpx

from lazycat.telemetry.logging import get_logger
from lazycat.tools.registry import DispatchResult, DispatchStatus, ExecutorClient, ExecutorError


class MessageHandler(Protocol):
    async def execute(self, message: dict[str, Any]) -> dict[str, Any]: ...


class HttpExecutorClient:
    """Sends ``{command, args}`` messages to the executor service and returns its status message."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)
        self._logger = get_logger(__name__)

    async def invoke(self, message: dict[str, Any]) -> dict[str, Any]:
        self._logger.info("executor.invoke", command=message.get("command"), transport="http")
        resp = await self._client.post("/execute", json=message)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ExecutorError("executor_failed", "Executor returned a non-object response")
        return data

    async def aclose(self) -> None:
        await self._client.aclose()


class LocalExecutorClient:
    """Same message contract, delivered to an executor living in this process."""

    def __init__(self, handler: MessageHandler) -> None:
        self._handler = handler
        self._logger = get_logger(__name__)

    async def invoke(self, message: dict[str, Any]) -> dict[str, Any]:
        self._logger.info("executor.invoke", command=message.get("command"), transport="local")
        return await self._handler.execute(message)

    async def aclose(self) -> None:
        return None


class ExecutorPageContext:
    """Page and selection access for in-process commands, read through the executor."""

    def __init__(self, client: ExecutorClient) -> None:
        self._client = client

    async def page_text(self) -> str:
        return await self._read("read_page")

    async def selected_text(self) -> str:
        return await self._read("read_selection")

    async def replace_selection(self, text: str) -> DispatchResult:
        response = await self._client.invoke({"command": "replace_selection", "args": {"text": text}})
        return DispatchResult.from_response(response)

    async def _read(self, command: str) -> str:
        result = DispatchResult.from_response(await self._client.invoke({"command": command, "args": {}}))
        if result.status is not DispatchStatus.OK:
            raise ExecutorError(result.detail.get("reason", "executor_failed"), result.detail.get("message", command))
        return result.detail.get("text", "")


__all__ = ["ExecutorPageContext", "HttpExecutorClient", "LocalExecutorClient"]
