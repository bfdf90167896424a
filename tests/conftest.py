"""
Shared fixtures: synthetic screenshots, a scripted vision provider, and a
mock transport standing in for the screenshot service and the target site.
"""

import io
import json

import httpx
import pytest
from PIL import Image

from brandkit_extractor.config import Settings

SCREENSHOT_HOST = "api.screenshotone.com"

SAMPLE_HTML = """<!doctype html>
<html><head>
<title> Acme Rockets </title>
<meta content="Rockets for everyone" name="description">
<meta name="theme-color" content="#ff5500">
<meta property="og:image" content="/og.png">
<link rel="icon" href="/favicon-16.png">
<link rel="apple-touch-icon" href="/apple-touch.png">
</head><body><h1>Go further</h1><img class="site-logo" src="/img/logo.svg"></body></html>
"""


def make_png(width=1280, height=2400, color=(30, 120, 200)):
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def ai_reply(**overrides):
    payload = {
        "brandIdentity": {"name": "Acme", "tagline": "Rockets for everyone"},
        "visualSystem": {
            "colors": ["#111111", "#222222", "#333333", "#444444"],
            "typography": "Inter",
            "baseAppearance": "gradient",
        },
        "brandContext": {
            "overview": "Acme builds rockets.",
            "keywords": ["rockets", "space"],
            "tones": ["Bold"],
        },
        "visualAreas": [
            {"name": "Hero", "description": "hero", "yPercent": 0, "heightPercent": 15},
            {"name": "Features", "description": "features", "yPercent": 20, "heightPercent": 20},
            {"name": "Footer", "description": "footer", "yPercent": 95, "heightPercent": 20},
        ],
        "antiCrawlDetected": False,
    }
    payload.update(overrides)
    return "Here is the analysis:\n```json\n" + json.dumps(payload) + "\n```"


class FakeProvider:
    name = "fake"
    model = "fake-vision"

    def __init__(self, reply=None):
        self.reply = reply if reply is not None else ai_reply()
        self.calls = []

    async def analyze(self, system_prompt, user_text, image_png=None):
        self.calls.append({"system": system_prompt, "user": user_text, "image": image_png})
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def make_transport(png=None, html=SAMPLE_HTML, shot_status=200, html_status=200, site_error=None):
    """
    png=None makes the screenshot service fail; html=None makes the site fail.
    `site_error` is raised for site requests instead of answering.
    """
    seen = []

    def handler(request):
        seen.append(request)
        if request.url.host == SCREENSHOT_HOST:
            if png is None:
                return httpx.Response(500, text="render failed")
            return httpx.Response(shot_status, content=png, headers={"content-type": "image/png"})
        if site_error is not None:
            raise site_error
        if html is None:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(html_status, text=html, headers={"content-type": "text/html"})

    transport = httpx.MockTransport(handler)
    transport.seen = seen
    return transport


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        data_dir=str(tmp_path / "data"),
        openai_api_key="test-key",
        screenshot_api_key="shot-key",
        editor_debounce_s=0.05,
        logo_timeout_s=1.0,
    )
