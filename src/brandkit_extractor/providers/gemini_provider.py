from __future__ import annotations

import logging
from io import BytesIO
from typing import Any

from PIL import Image

from brandkit_extractor.errors import AnalysisError

logger = logging.getLogger(__name__)


class GeminiVisionProvider:
    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 4000,
        temperature: float = 0.3,
    ) -> None:
        from google import genai  # type: ignore

        self.client = genai.Client(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def analyze(
        self,
        system_prompt: str,
        user_text: str,
        image_png: bytes | None = None,
    ) -> str:
        """
        The google-genai SDK accepts PIL Images directly in `contents`.
        """
        from google.genai import types  # type: ignore

        contents: list[Any] = [user_text]
        if image_png is not None:
            contents.append(Image.open(BytesIO(image_png)))

        try:
            resp = await self.client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    temperature=self.temperature,
                    max_output_tokens=self.max_tokens,
                ),
            )
        except Exception as exc:
            logger.error("Gemini API error: %s", exc)
            raise AnalysisError("AI analysis failed") from exc

        text: str | None = getattr(resp, "text", None)
        if not text:
            raise AnalysisError("AI response was empty")
        return text
