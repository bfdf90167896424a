from __future__ import annotations

from brandkit_extractor.config import Settings
from brandkit_extractor.errors import ConfigurationError
from brandkit_extractor.providers.base import VisionProvider


def build_provider(settings: Settings) -> VisionProvider:
    """Pick the AI backend named by `AI_PROVIDER`; fail fast if its key is absent."""
    if settings.ai_provider == "gemini":
        if not settings.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY is not set")
        from brandkit_extractor.providers.gemini_provider import GeminiVisionProvider

        return GeminiVisionProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_vision_model,
            max_tokens=settings.ai_max_tokens,
            temperature=settings.ai_temperature,
        )

    if not settings.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY is not set")
    from brandkit_extractor.providers.openai_provider import OpenAIVisionProvider

    return OpenAIVisionProvider(
        api_key=settings.openai_api_key,
        base_url=settings.api_base_url,
        model=settings.api_model,
        max_tokens=settings.ai_max_tokens,
        temperature=settings.ai_temperature,
    )
