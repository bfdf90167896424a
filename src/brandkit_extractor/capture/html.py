"""
Best-effort page metadata and logo discovery from raw HTML.

Every field is described as an ordered list of patterns. The first pattern
that matches wins, so the list order is the priority order. Attribute order
varies between sites, hence most fields carry both an ``attr...content`` and a
``content...attr`` variant.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any
from urllib.parse import urljoin, urlparse

import httpx

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Upgrade-Insecure-Requests": "1",
    "Cache-Control": "max-age=0",
}

_Q = "[\"']"
_V = "([^\"']+)"


def _compile(*patterns: str) -> list[re.Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


def _meta(attr: str, value: str) -> list[re.Pattern[str]]:
    return _compile(
        rf"<meta[^>]+{attr}={_Q}{value}{_Q}[^>]+content={_Q}{_V}{_Q}",
        rf"<meta[^>]+content={_Q}{_V}{_Q}[^>]+{attr}={_Q}{value}{_Q}",
    )


def _link(rel: str) -> list[re.Pattern[str]]:
    return _compile(
        rf"<link[^>]+rel={_Q}{rel}{_Q}[^>]+href={_Q}{_V}{_Q}",
        rf"<link[^>]+href={_Q}{_V}{_Q}[^>]+rel={_Q}{rel}{_Q}",
    )


LARGE_ICON_SIZES = "(?:32x32|48x48|64x64|96x96|128x128|192x192|256x256|512x512)"

TITLE = _compile(r"<title[^>]*>([^<]+)</title>")
H1 = _compile(r"<h1[^>]*>([^<]+)</h1>")
DESCRIPTION = _meta("name", "description")
THEME_COLOR = _meta("name", "theme-color")
OG_IMAGE = _meta("property", "og:image")
OG_TITLE = _meta("property", "og:title")
APPLE_TOUCH_ICON = _link("apple-touch-icon")
LARGE_ICON = _compile(
    rf"<link[^>]+rel={_Q}icon{_Q}[^>]+sizes={_Q}{LARGE_ICON_SIZES}{_Q}[^>]+href={_Q}{_V}{_Q}",
)
ICON = _link("(?:icon|shortcut icon)")
LOGO_IMG = _compile(
    rf"<img[^>]+(?:class|id)={_Q}[^\"']*logo[^\"']*{_Q}[^>]+src={_Q}{_V}{_Q}",
    rf"<img[^>]+src={_Q}{_V}{_Q}[^>]+(?:class|id)={_Q}[^\"']*logo[^\"']*{_Q}",
)

# Logo sources in priority order; the origin's /favicon.ico is the last resort.
LOGO_RULES: list[tuple[str, list[re.Pattern[str]]]] = [
    ("apple-touch-icon", APPLE_TOUCH_ICON),
    ("large-icon", LARGE_ICON),
    ("icon", ICON),
    ("logo-img", LOGO_IMG),
]


@dataclass
class PageMetadata:
    title: str | None = None
    description: str | None = None
    og_image: str | None = None
    og_title: str | None = None
    favicon: str | None = None
    apple_touch_icon: str | None = None
    theme_color: str | None = None
    h1: str | None = None
    logo_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {
            "title": data["title"],
            "description": data["description"],
            "ogImage": data["og_image"],
            "ogTitle": data["og_title"],
            "favicon": data["favicon"],
            "appleTouchIcon": data["apple_touch_icon"],
            "themeColor": data["theme_color"],
            "h1": data["h1"],
            "logoUrl": data["logo_url"],
        }


def first_match(html: str, patterns: list[re.Pattern[str]]) -> str | None:
    for pattern in patterns:
        m = pattern.search(html)
        if m:
            value = m.group(1).strip()
            if value:
                return value
    return None


def resolve_url(src: str | None, base_url: str) -> str | None:
    if not src:
        return None
    if src.startswith(("data:", "http://", "https://")):
        return src
    if src.startswith("//"):
        return "https:" + src
    try:
        return urljoin(base_url, src)
    except ValueError:
        return None


def default_favicon(base_url: str) -> str | None:
    parsed = urlparse(base_url)
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}/favicon.ico"


def extract_logo_url(html: str, base_url: str) -> str | None:
    for source, patterns in LOGO_RULES:
        found = first_match(html, patterns)
        if found:
            logger.debug("logo found via %s: %s", source, found)
            return resolve_url(found, base_url)
    return default_favicon(base_url)


def parse_html(html: str, base_url: str) -> PageMetadata:
    favicon = resolve_url(first_match(html, ICON), base_url) or default_favicon(base_url)
    return PageMetadata(
        title=first_match(html, TITLE),
        description=first_match(html, DESCRIPTION),
        og_image=resolve_url(first_match(html, OG_IMAGE), base_url),
        og_title=first_match(html, OG_TITLE),
        favicon=favicon,
        apple_touch_icon=resolve_url(first_match(html, APPLE_TOUCH_ICON), base_url),
        theme_color=first_match(html, THEME_COLOR),
        h1=first_match(html, H1),
        logo_url=extract_logo_url(html, base_url),
    )


async def fetch_html(client: httpx.AsyncClient, url: str, timeout: float) -> str:
    """GET a page the way a browser would. Raises httpx errors on failure."""
    resp = await client.get(url, headers=BROWSER_HEADERS, follow_redirects=True, timeout=timeout)
    resp.raise_for_status()
    return resp.text
