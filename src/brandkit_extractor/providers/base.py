from __future__ import annotations

from typing import Protocol


class VisionProvider(Protocol):
    name: str
    model: str

    async def analyze(
        self,
        system_prompt: str,
        user_text: str,
        image_png: bytes | None = None,
    ) -> str:
        """Return the model's raw text reply."""
        ...
