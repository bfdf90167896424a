from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from brandkit_extractor.errors import AnalysisError
from brandkit_extractor.models import BrandKit, VisualArea, normalize_colors

logger = logging.getLogger(__name__)


@dataclass
class ParsedAnalysis:
    brand_kit: BrandKit
    visual_areas: list[VisualArea]
    anti_crawl: bool


def extract_json_object(text: str) -> str | None:
    """
    Return the first balanced top-level ``{...}`` in `text`.

    Braces inside JSON strings are ignored, so prose or code fences around the
    object do not matter.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def parse_ai_response(text: str | None) -> dict[str, Any]:
    raw = extract_json_object(text or "")
    if raw is None:
        raise AnalysisError("No valid JSON in AI response")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise AnalysisError(f"Malformed JSON in AI response: {exc}") from exc
    if not isinstance(data, dict):
        raise AnalysisError("No valid JSON in AI response")
    return data


def _visual_areas(raw: Any) -> list[VisualArea]:
    if not isinstance(raw, list):
        return []
    areas: list[VisualArea] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            area = VisualArea.from_dict(item)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed visual area: %r", item)
            continue
        if area.height_percent > 0:
            areas.append(area)
    return areas


def normalize_analysis(data: dict[str, Any]) -> ParsedAnalysis:
    """
    Turn the model's JSON into a BrandKit plus the transient crop hints.

    `visualAreas` and `antiCrawlDetected` are consumed here and never reach
    the kit itself.
    """
    data = dict(data)
    for section in ("brandIdentity", "visualSystem", "brandContext"):
        if data.get(section) is not None and not isinstance(data[section], dict):
            raise AnalysisError("Malformed brand kit in AI response")

    raw_areas = data.pop("visualAreas", None)
    anti_crawl = data.pop("antiCrawlDetected", False) is True

    context = dict(data.get("brandContext") or {})
    tone = context.pop("tone", None)
    if isinstance(tone, str):
        context["tones"] = [tone]
    context["images"] = []
    data["brandContext"] = context

    kit = BrandKit.from_dict(data)
    visual = data.get("visualSystem") or {}
    kit.visual_system.colors = [] if anti_crawl else normalize_colors(visual.get("colors"))

    return ParsedAnalysis(brand_kit=kit, visual_areas=_visual_areas(raw_areas), anti_crawl=anti_crawl)
