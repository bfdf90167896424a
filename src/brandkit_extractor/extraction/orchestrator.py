from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Any
from urllib.parse import urlparse

import httpx
from PIL import Image

from brandkit_extractor.capture.html import PageMetadata, extract_logo_url, fetch_html, parse_html
from brandkit_extractor.capture.screenshot import CAPTURE_METHOD, ScreenshotService
from brandkit_extractor.config import Settings
from brandkit_extractor.errors import BrandKitError, CaptureError, ConfigurationError, MissingInputError
from brandkit_extractor.extraction.parsing import normalize_analysis, parse_ai_response
from brandkit_extractor.extraction.prompts import SYSTEM_PROMPT, metadata_user_text, screenshot_user_text
from brandkit_extractor.imaging.crop import CroppedArea, crop_regions, to_png_data_uri
from brandkit_extractor.models import BrandKit, VisualArea
from brandkit_extractor.providers.base import VisionProvider

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    brand_kit: BrandKit
    has_screenshot: bool
    visual_images_count: int

    def to_response(self) -> dict[str, Any]:
        return {
            "success": True,
            "data": self.brand_kit.to_dict(),
            "hasScreenshot": self.has_screenshot,
            "hasVisualImages": self.visual_images_count > 0,
            "visualImagesCount": self.visual_images_count,
        }


@dataclass
class ScreenshotResult:
    screenshot: bytes
    metadata: PageMetadata | None

    def to_response(self) -> dict[str, Any]:
        return {
            "success": True,
            "screenshot": to_png_data_uri(self.screenshot),
            "screenshotSize": len(self.screenshot),
            "metadata": self.metadata.to_dict() if self.metadata else {},
            "method": CAPTURE_METHOD,
        }


def normalize_url(raw: str | None) -> str:
    url = (raw or "").strip()
    if not url:
        raise MissingInputError("URL is required")
    if "://" not in url:
        url = "https://" + url
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise MissingInputError(f"Not a valid website URL: {raw}", error="Invalid URL")
    return url


class BrandExtractor:
    """
    Runs one extraction: capture -> analyze -> parse -> crop -> enrich.

    Steps run strictly in sequence. Only capture and analysis can fail the
    whole call; cropping and logo lookup degrade silently.
    """

    def __init__(
        self,
        settings: Settings,
        provider: VisionProvider,
        client: httpx.AsyncClient,
        screenshots: ScreenshotService | None = None,
    ) -> None:
        self.settings = settings
        self.provider = provider
        self.client = client
        self.screenshots = screenshots or ScreenshotService.from_settings(client, settings)

    async def extract(self, url: str) -> ExtractionResult:
        screenshot, meta = await self._capture(url)

        if screenshot is not None:
            user_text = screenshot_user_text(url)
        else:
            user_text = metadata_user_text(url, meta or PageMetadata())

        logger.info("Analyzing %s with %s/%s", url, self.provider.name, self.provider.model)
        text = await self.provider.analyze(SYSTEM_PROMPT, user_text, screenshot)
        parsed = normalize_analysis(parse_ai_response(text))
        kit = parsed.brand_kit

        crops: list[CroppedArea] = self._crop(screenshot, parsed.visual_areas)
        if parsed.anti_crawl:
            # An anti-crawl kit carries the full capture as its only image.
            logger.warning("Anti-crawl page detected for %s", url)
            kit.brand_context.images = [to_png_data_uri(screenshot)] if screenshot is not None else []
        else:
            kit.brand_context.images = [c.image_data for c in crops]
            logo = meta.logo_url if meta is not None else await self._find_logo(url)
            if logo:
                kit.brand_identity.logo = logo

        return ExtractionResult(
            brand_kit=kit,
            has_screenshot=screenshot is not None,
            visual_images_count=len(crops),
        )

    async def _capture(self, url: str) -> tuple[bytes | None, PageMetadata | None]:
        if self.screenshots.configured:
            try:
                return await self.screenshots.capture(url), None
            except BrandKitError as exc:
                logger.warning("Screenshot failed for %s: %s", url, exc.message)
        else:
            logger.warning("Screenshot API key not configured, will try HTML fallback")

        try:
            html = await fetch_html(self.client, url, timeout=self.settings.html_timeout_s)
        except httpx.HTTPError as exc:
            logger.error("HTML fallback failed for %s: %s", url, exc)
            raise CaptureError("Both screenshot and HTML extraction failed") from exc

        meta = parse_html(html, url)
        logger.info("HTML metadata extracted: %s", meta.title)
        return None, meta

    def _crop(self, screenshot: bytes | None, areas: list[VisualArea]) -> list[CroppedArea]:
        if screenshot is None or not areas:
            return []
        try:
            with Image.open(BytesIO(screenshot)) as img:
                return crop_regions(img, areas)
        except Exception as exc:
            logger.error("Cropping failed: %s", exc)
            return []

    async def _find_logo(self, url: str) -> str | None:
        timeout = self.settings.logo_timeout_s
        try:
            html = await asyncio.wait_for(fetch_html(self.client, url, timeout=timeout), timeout=timeout)
        except (httpx.HTTPError, asyncio.TimeoutError) as exc:
            logger.info("Logo extraction skipped: %s", exc or type(exc).__name__)
            return None
        logo = extract_logo_url(html, url)
        logger.info("Logo extracted from HTML: %s", logo)
        return logo


async def capture_screenshot(
    screenshots: ScreenshotService,
    client: httpx.AsyncClient,
    url: str,
    html_timeout: float = 15.0,
) -> ScreenshotResult:
    """Screenshot plus best-effort page metadata; no AI involved."""
    if not screenshots.configured:
        raise ConfigurationError("Screenshot API key not configured")
    png = await screenshots.capture(url)
    meta: PageMetadata | None = None
    try:
        html = await fetch_html(client, url, timeout=html_timeout)
        meta = parse_html(html, url)
    except httpx.HTTPError as exc:
        logger.info("Metadata extraction failed for %s: %s", url, exc)
    return ScreenshotResult(screenshot=png, metadata=meta)
