from __future__ import annotations

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file for convenience.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    data_dir: str = "data"

    # AI analysis (any OpenAI-compatible chat-completions endpoint by default)
    ai_provider: str = "openai"
    openai_api_key: str | None = None
    api_base_url: str = "https://yinli.one/v1"
    api_model: str = "gemini-3-flash-preview-thinking"
    ai_max_tokens: int = 4000
    ai_temperature: float = 0.3

    gemini_api_key: str | None = None
    gemini_vision_model: str = "gemini-2.0-flash"

    # Screenshot capture
    screenshot_api_key: str | None = None
    screenshot_api_url: str = "https://api.screenshotone.com/take"

    # HTTP service
    frontend_url: str | None = None
    port: int = 8080
    log_level: str = "INFO"

    # Pipeline timings (seconds)
    logo_timeout_s: float = 5.0
    html_timeout_s: float = 15.0
    screenshot_timeout_s: float = 60.0
    editor_debounce_s: float = 0.5

    @property
    def allowed_origins(self) -> list[str]:
        origins = ["http://localhost:5173", "http://localhost:3000"]
        if self.frontend_url:
            origins.append(self.frontend_url.rstrip("/"))
        return origins

    @property
    def ai_api_key(self) -> str | None:
        if self.ai_provider == "gemini":
            return self.gemini_api_key
        return self.openai_api_key


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
