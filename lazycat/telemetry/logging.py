from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import Any

import structlog

from lazycat.config import TelemetrySettings

# Transcripts and interpreter output can be page-sized.
MAX_TEXT_FIELD_CHARS = 400
_TEXT_FIELDS = ("utterance", "transcript", "heard", "raw", "text")

_configured = False


def _clip_text_fields(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    for key in _TEXT_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str) and len(value) > MAX_TEXT_FIELD_CHARS:
            event_dict[key] = value[:MAX_TEXT_FIELD_CHARS] + "..."
    return event_dict


def configure_logging(settings: TelemetrySettings | None = None) -> None:
    global _configured
    if _configured:
        return
    settings = settings or TelemetrySettings()

    logging.basicConfig(format="%(message)s", level=getattr(logging, settings.log_level.upper(), logging.INFO))
    # httpx logs every interpreter and executor request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    renderer: Any = structlog.processors.JSONRenderer() if settings.json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _clip_text_fields,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)


def command_context(**values: Any) -> Any:
    """Bind ``values`` to every log line emitted while one command runs."""
    return structlog.contextvars.bound_contextvars(**values)


__all__ = ["MAX_TEXT_FIELD_CHARS", "command_context", "configure_logging", "get_logger"]
