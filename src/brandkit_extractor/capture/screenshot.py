from __future__ import annotations

import logging

import httpx

from brandkit_extractor.config import Settings
from brandkit_extractor.errors import ConfigurationError, ScreenshotError

logger = logging.getLogger(__name__)

# Fixed capture profile: desktop viewport, full page, quiet page chrome.
CAPTURE_PARAMS = {
    "viewport_width": "1280",
    "viewport_height": "800",
    "format": "png",
    "full_page": "true",
    "delay": "3",
    "block_ads": "true",
    "block_cookie_banners": "true",
    "image_quality": "80",
    "ignore_host_errors": "true",
}

CAPTURE_METHOD = "screenshotone-fullpage"


class ScreenshotService:
    name = "screenshotone"

    def __init__(
        self,
        client: httpx.AsyncClient,
        access_key: str | None,
        endpoint: str = "https://api.screenshotone.com/take",
        timeout: float = 60.0,
    ) -> None:
        self.client = client
        self.access_key = access_key
        self.endpoint = endpoint
        self.timeout = timeout

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> ScreenshotService:
        return cls(
            client,
            access_key=settings.screenshot_api_key,
            endpoint=settings.screenshot_api_url,
            timeout=settings.screenshot_timeout_s,
        )

    @property
    def configured(self) -> bool:
        return bool(self.access_key)

    async def capture(self, url: str) -> bytes:
        """
        Return PNG bytes of a full-page render of `url`.
        """
        if not self.access_key:
            raise ConfigurationError("Screenshot API key not configured")

        params = {"access_key": self.access_key, "url": url, **CAPTURE_PARAMS}
        try:
            resp = await self.client.get(self.endpoint, params=params, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise ScreenshotError(f"Screenshot request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.error("Screenshot API error (%s): %s", resp.status_code, resp.text[:500])
            raise ScreenshotError(resp.text[:500] or "Screenshot API failed")

        logger.info("Screenshot captured for %s (%d bytes)", url, len(resp.content))
        return resp.content
