from __future__ import annotations

import logging
from typing import Any

from brandkit_extractor.errors import AnalysisError
from brandkit_extractor.imaging.crop import to_png_data_uri

logger = logging.getLogger(__name__)


class OpenAIVisionProvider:
    """
    Chat-completions client for any OpenAI-compatible endpoint (the base URL is
    configurable, so third-party gateways serving other model families work too).
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        max_tokens: int = 4000,
        temperature: float = 0.3,
    ) -> None:
        from openai import AsyncOpenAI  # type: ignore

        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def analyze(
        self,
        system_prompt: str,
        user_text: str,
        image_png: bytes | None = None,
    ) -> str:
        from openai import OpenAIError  # type: ignore

        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=build_messages(system_prompt, user_text, image_png),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except OpenAIError as exc:
            logger.error("AI API error: %s", exc)
            raise AnalysisError("AI analysis failed") from exc

        choices = getattr(resp, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise AnalysisError("AI response was empty")
        return content


def build_messages(system_prompt: str, user_text: str, image_png: bytes | None) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    if image_png is None:
        messages.append({"role": "user", "content": user_text})
    else:
        messages.append(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": user_text},
                    {"type": "image_url", "image_url": {"url": to_png_data_uri(image_png)}},
                ],
            }
        )
    return messages
