from __future__ import annotations

from typing import Any

from fastapi import APIRouter, FastAPI
from pydantic import BaseModel, Field

from lazycat.config import load_settings
from lazycat.telemetry.logging import configure_logging, get_logger
from lazycat.tools.browser import BrowserExecutor
from lazycat.tools.playwright_host import PlaywrightBrowserHost


class ExecuteRequest(BaseModel):
    command: str = ""
    args: dict[str, Any] = Field(default_factory=dict)


def build_router(executor: BrowserExecutor) -> APIRouter:
    router = APIRouter()
    logger = get_logger(__name__)

    @router.post("/execute")
    async def execute(request: ExecuteRequest) -> dict[str, Any]:
        logger.info("executor.request", command=request.command)
        return await executor.execute(request.model_dump())

    @router.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return router


def create_app(executor: BrowserExecutor) -> FastAPI:
    app = FastAPI(title="Lazy Cat Page Executor")
    app.include_router(build_router(executor))
    return app


def _default_app() -> FastAPI:
    settings = load_settings()
    configure_logging(settings.telemetry)
    host = PlaywrightBrowserHost(settings.browser)
    app = create_app(BrowserExecutor(host))

    @app.on_event("startup")
    async def startup_event() -> None:
        await host.start()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        await host.stop()

    return app


# uvicorn lazycat.tools.executor_service:app --port 8020
app = _default_app()


__all__ = ["ExecuteRequest", "app", "build_router", "create_app"]
