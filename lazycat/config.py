from __future__ import annotations

import functools
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from lazycat.wake.phrases import Sensitivity


class WakeSettings(BaseModel):
    sensitivity: Sensitivity = Sensitivity.DEFAULT
    timeout_seconds: float = 5.0
    prefix_window: int = 40


class ASRSettings(BaseModel):
    locale: str = "en-US"
    max_alternatives: int = 5
    vosk_model_path: str | None = None
    vosk_model_dir: str | None = None
    sample_rate: int = 16_000
    block_ms: int = 100
    input_device: str | int | None = None

    def model_path_for(self, locale: str | None = None) -> str | None:
        """Prefer a per-locale model directory (``<dir>/en-us``) over the single fallback path."""
        tag = (locale or self.locale).strip().lower()
        if self.vosk_model_dir and tag:
            candidate = Path(self.vosk_model_dir) / tag
            if candidate.is_dir():
                return str(candidate)
        return self.vosk_model_path


class InterpreterSettings(BaseModel):
    provider: Literal["ollama", "gemini"] = "ollama"
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-1.5-flash"
    timeout_seconds: float = 30.0


class ExecutorSettings(BaseModel):
    url: str | None = "http://localhost:8020"
    timeout_seconds: float = 10.0


class BrowserSettings(BaseModel):
    channel: str | None = None
    user_data_dir: str | None = None
    headless: bool = False


class TelemetrySettings(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = True
    otlp_endpoint: str | None = None
    environment: str = "local"


class UISettings(BaseModel):
    floating_ui_origin: str = "http://localhost:8010"


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env", ".env.local"), env_file_encoding="utf-8", extra="ignore")

    WAKE_SENSITIVITY: int = Field(default=1, ge=0, le=2)
    WAKE_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)
    WAKE_PREFIX_WINDOW: int = Field(default=40, ge=1)
    ASR_LOCALE: str = "en-US"
    ASR_MAX_ALTERNATIVES: int = Field(default=5, ge=1, le=10)
    VOSK_MODEL_PATH: str | None = None
    VOSK_MODEL_DIR: str | None = None
    AUDIO_SAMPLE_RATE: int = 16_000
    AUDIO_BLOCK_MS: int = 100
    AUDIO_INPUT_DEVICE: str | int | None = None
    INTERPRETER_PROVIDER: Literal["ollama", "gemini"] = "ollama"
    OLLAMA_HOST: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3.2"
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-1.5-flash"
    INTERPRETER_TIMEOUT_SECONDS: float = 30.0
    EXECUTOR_URL: str | None = "http://localhost:8020"
    EXECUTOR_TIMEOUT_SECONDS: float = 10.0
    BROWSER_CHANNEL: str | None = None
    BROWSER_USER_DATA_DIR: str | None = None
    BROWSER_HEADLESS: bool = False
    LOG_LEVEL: str = "INFO"
    OTEL_EXPORTER_OTLP_ENDPOINT: str | None = None
    FLOATING_UI_ORIGIN: str = "http://localhost:8010"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"

    @staticmethod
    def _coerce_device(device: str | int | None) -> str | int | None:
        if isinstance(device, str):
            trimmed = device.strip()
            if not trimmed:
                return None
            if trimmed.isdigit():
                return int(trimmed)
            return trimmed
        return device

    @property
    def wake(self) -> WakeSettings:
        return WakeSettings(
            sensitivity=Sensitivity(self.WAKE_SENSITIVITY),
            timeout_seconds=self.WAKE_TIMEOUT_SECONDS,
            prefix_window=self.WAKE_PREFIX_WINDOW,
        )

    @property
    def asr(self) -> ASRSettings:
        return ASRSettings(
            locale=self.ASR_LOCALE,
            max_alternatives=self.ASR_MAX_ALTERNATIVES,
            vosk_model_path=self.VOSK_MODEL_PATH,
            vosk_model_dir=self.VOSK_MODEL_DIR,
            sample_rate=self.AUDIO_SAMPLE_RATE,
            block_ms=self.AUDIO_BLOCK_MS,
            input_device=self._coerce_device(self.AUDIO_INPUT_DEVICE),
        )

    @property
    def interpreter(self) -> InterpreterSettings:
        return InterpreterSettings(
            provider=self.INTERPRETER_PROVIDER,
            ollama_host=self.OLLAMA_HOST,
            ollama_model=self.OLLAMA_MODEL,
            gemini_api_key=self.GEMINI_API_KEY,
            gemini_model=self.GEMINI_MODEL,
            timeout_seconds=self.INTERPRETER_TIMEOUT_SECONDS,
        )

    @property
    def executor(self) -> ExecutorSettings:
        return ExecutorSettings(
            url=(self.EXECUTOR_URL or "").strip() or None,
            timeout_seconds=self.EXECUTOR_TIMEOUT_SECONDS,
        )

    @property
    def browser(self) -> BrowserSettings:
        return BrowserSettings(
            channel=self.BROWSER_CHANNEL,
            user_data_dir=self.BROWSER_USER_DATA_DIR,
            headless=self.BROWSER_HEADLESS,
        )

    @property
    def telemetry(self) -> TelemetrySettings:
        return TelemetrySettings(
            log_level=self.LOG_LEVEL,
            json_logs=self.ENVIRONMENT != "local",
            otlp_endpoint=self.OTEL_EXPORTER_OTLP_ENDPOINT,
            environment=self.ENVIRONMENT,
        )

    @property
    def ui(self) -> UISettings:
        return UISettings(floating_ui_origin=self.FLOATING_UI_ORIGIN)


@functools.lru_cache(maxsize=1)
def load_settings() -> AppSettings:
    return AppSettings()


__all__ = [
    "AppSettings",
    "ASRSettings",
    "BrowserSettings",
    "ExecutorSettings",
    "InterpreterSettings",
    "TelemetrySettings",
    "UISettings",
    "WakeSettings",
    "load_settings",
]
