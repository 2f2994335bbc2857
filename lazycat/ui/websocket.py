from __future__ import annotations

import asyncio
import time
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from lazycat.orchestrator.events import State
from lazycat.telemetry.logging import get_logger


class StatusBridge:
    """Pushes pipeline status to ``/ws/state`` clients.

    Every message is ``{"seq", "ts", "state", "payload"}``. A client gets the latest
    status as soon as it connects; clients whose send fails are dropped.
    """

    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()
        self._router = APIRouter()
        self._router.add_api_websocket_route("/ws/state", self._websocket_handler)
        self._lock = asyncio.Lock()
        self._seq = 0
        self._latest: dict[str, Any] = self._message("IDLE", {})
        self._logger = get_logger(__name__)

    @property
    def router(self) -> APIRouter:
        return self._router

    @property
    def latest(self) -> dict[str, Any]:
        return dict(self._latest)

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def publish_state(self, state: State, payload: dict[str, Any] | None = None) -> None:
        self._seq += 1
        message = self._message(state, payload or {})
        self._latest = message
        async with self._lock:
            clients = list(self._clients)
        if not clients:
            return
        results = await asyncio.gather(*(client.send_json(message) for client in clients), return_exceptions=True)
        stale = [client for client, outcome in zip(clients, results) if isinstance(outcome, Exception)]
        if stale:
            async with self._lock:
                self._clients.difference_update(stale)
            self._logger.info("ui.client.dropped", count=len(stale))

    async def _websocket_handler(self, websocket: WebSocket) -> None:
        await websocket.accept()
        await websocket.send_json(self._latest)
        async with self._lock:
            self._clients.add(websocket)
        self._logger.info("ui.client.connected", count=len(self._clients))
        try:
            while True:
                if (await websocket.receive_text()).strip().lower() == "ping":
                    await websocket.send_json({"pong": self._seq})
        except WebSocketDisconnect:
            async with self._lock:
                self._clients.discard(websocket)
            self._logger.info("ui.client.disconnected", count=len(self._clients))

    def _message(self, state: State, payload: dict[str, Any]) -> dict[str, Any]:
        return {"seq": self._seq, "ts": time.time(), "state": state, "payload": payload}


__all__ = ["StatusBridge"]
