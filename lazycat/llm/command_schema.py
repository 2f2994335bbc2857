from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_REWRITE_INSTRUCTION = "Rewrite the text to be clearer and more concise, keeping its meaning."


class CommandArgs(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, frozen=True)


class OpenTabArgs(CommandArgs):
    url: str = Field(..., min_length=1, max_length=2048)


class ScrollArgs(CommandArgs):
    direction: Literal["up", "down"] = "down"

    @field_validator("direction", mode="before")
    @classmethod
    def default_to_down(cls, value: Any) -> str:
        return "up" if str(value or "").strip().lower() == "up" else "down"


class SearchWebArgs(CommandArgs):
    query: str = Field(..., min_length=1, max_length=512)


class ClickUIArgs(CommandArgs):
    text: str = Field(..., min_length=1, max_length=256)


class SummarizeArgs(CommandArgs):
    scope: Literal["page", "selection"] = "page"

    @field_validator("scope", mode="before")
    @classmethod
    def default_to_page(cls, value: Any) -> str:
        return "selection" if str(value or "").strip().lower() == "selection" else "page"


class RewriteSelectionArgs(CommandArgs):
    instruction: str = Field(default=DEFAULT_REWRITE_INSTRUCTION, max_length=512)

    @field_validator("instruction", mode="before")
    @classmethod
    def default_instruction(cls, value: Any) -> str:
        text = str(value or "").strip()
        return text or DEFAULT_REWRITE_INSTRUCTION


class ReplaceSelectionArgs(CommandArgs):
    text: str = Field(..., min_length=1)


COMMAND_MODELS: dict[str, type[CommandArgs]] = {
    "open_tab": OpenTabArgs,
    "scroll": ScrollArgs,
    "search_web": SearchWebArgs,
    "click_ui": ClickUIArgs,
    "summarize": SummarizeArgs,
    "rewrite_selection": RewriteSelectionArgs,
}

COMMAND_NAMES: tuple[str, ...] = tuple(COMMAND_MODELS)


class CommandArgsError(ValueError):
    """A recognized command's arguments do not fit its variant."""

    def __init__(self, command: str, reason: str, message: str) -> None:
        super().__init__(message)
        self.command = command
        self.reason = reason
        self.message = message


def _reason_for(exc: ValidationError) -> tuple[str, str]:
    error = exc.errors()[0]
    field = str(error["loc"][0]) if error.get("loc") else "args"
    if error["type"] in {"missing", "string_too_short"}:
        return f"missing_{field}", f"Missing {field}"
    return f"invalid_{field}", f"Invalid {field}: {error.get('msg', 'bad value')}"


def parse_args(command: str, args: dict[str, Any], model: type[CommandArgs] | None = None) -> CommandArgs:
    model = model or COMMAND_MODELS[command]
    try:
        return model.model_validate(args)
    except ValidationError as exc:
        reason, message = _reason_for(exc)
        raise CommandArgsError(command, reason, message) from exc


COMMAND_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "command": {"type": "string", "enum": list(COMMAND_NAMES)},
        "args": {
            "type": "object",
            "properties": {
                "url": {"type": "string"},
                "direction": {"type": "string", "enum": ["up", "down"]},
                "query": {"type": "string"},
                "text": {"type": "string"},
                "scope": {"type": "string", "enum": ["page", "selection"]},
                "instruction": {"type": "string"},
            },
            "additionalProperties": False,
        },
        "confirmation": {"type": "string", "enum": ["none", "required"]},
    },
    "required": ["command", "args", "confirmation"],
}

ROUTER_SYSTEM_PROMPT = (
    "You are Lazy Cat's command router.\n"
    "Output ONLY valid JSON per schema. Exactly one command per request.\n"
    "For open_tab: command='open_tab' and args.url must be a full https URL.\n"
    "For scroll: command='scroll', args.direction must be 'up' or 'down'.\n"
    "For search_web: command='search_web', args.query is the user's search terms.\n"
    "For click_ui: command='click_ui', args.text is the visible label to click.\n"
    "For summarize: command='summarize', args.scope is 'selection' when the user refers to "
    "selected or highlighted text, otherwise 'page'.\n"
    "For rewrite_selection: command='rewrite_selection', args.instruction says how to rewrite "
    "the selected text (tone, length, fixes).\n"
    "Set confirmation to 'required' only for actions the user should approve first, otherwise 'none'.\n"
    "Never invent other fields. Never output any text outside the JSON."
)


__all__ = [
    "COMMAND_MODELS",
    "COMMAND_NAMES",
    "COMMAND_SCHEMA",
    "ROUTER_SYSTEM_PROMPT",
    "DEFAULT_REWRITE_INSTRUCTION",
    "CommandArgs",
    "CommandArgsError",
    "OpenTabArgs",
    "ScrollArgs",
    "SearchWebArgs",
    "ClickUIArgs",
    "SummarizeArgs",
    "RewriteSelectionArgs",
    "ReplaceSelectionArgs",
    "parse_args",
]
