from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

BASE_APPEARANCES = ("clean-minimal", "gradient", "frosted-glass", "retro-grain", "3d-volume")
DEFAULT_APPEARANCE = "clean-minimal"
DEFAULT_TYPOGRAPHY = "Inter"
DEFAULT_COLORS = ("#FF6B4A", "#4A7BF7", "#22C55E", "#9333EA")
PAD_COLOR = "#888888"
COLOR_COUNT = 4
MAX_CONTEXT_IMAGES = 6
MAX_VISUAL_AREAS = 3


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v) for v in value if v is not None]


def normalize_colors(colors: Any) -> list[str]:
    """Exactly four colors: truncate extras, pad missing slots with neutral gray."""
    if not isinstance(colors, (list, tuple)):
        colors = []
    out = [c.strip() for c in colors if isinstance(c, str) and c.strip()][:COLOR_COUNT]
    out.extend([PAD_COLOR] * (COLOR_COUNT - len(out)))
    return out


def unique(items: list[str]) -> list[str]:
    """Drop blanks and repeats, keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        s = item.strip()
        if s and s not in seen:
            seen.add(s)
            out.append(s)
    return out


@dataclass
class BrandIdentity:
    name: str = ""
    tagline: str = ""
    logo: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "tagline": self.tagline, "logo": self.logo}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BrandIdentity:
        if not isinstance(data, dict):
            data = {}
        return cls(
            name=str(data.get("name") or ""),
            tagline=str(data.get("tagline") or ""),
            logo=data.get("logo") or None,
        )


@dataclass
class VisualSystem:
    colors: list[str] = field(default_factory=lambda: list(DEFAULT_COLORS))
    typography: str = DEFAULT_TYPOGRAPHY
    base_appearance: str = DEFAULT_APPEARANCE

    def to_dict(self) -> dict[str, Any]:
        return {
            "colors": list(self.colors),
            "typography": self.typography,
            "baseAppearance": self.base_appearance,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> VisualSystem:
        if not isinstance(data, dict):
            data = {}
        appearance = data.get("baseAppearance")
        return cls(
            colors=_str_list(data.get("colors")),
            typography=str(data.get("typography") or DEFAULT_TYPOGRAPHY),
            base_appearance=appearance if appearance in BASE_APPEARANCES else DEFAULT_APPEARANCE,
        )


@dataclass
class BrandContext:
    overview: str = ""
    keywords: list[str] = field(default_factory=list)
    tones: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "overview": self.overview,
            "keywords": list(self.keywords),
            "tones": list(self.tones),
            "images": list(self.images),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BrandContext:
        if not isinstance(data, dict):
            data = {}
        return cls(
            overview=str(data.get("overview") or ""),
            keywords=unique(_str_list(data.get("keywords"))),
            tones=unique(_str_list(data.get("tones"))),
            images=_str_list(data.get("images"))[:MAX_CONTEXT_IMAGES],
        )


@dataclass
class BrandKit:
    brand_identity: BrandIdentity = field(default_factory=BrandIdentity)
    visual_system: VisualSystem = field(default_factory=VisualSystem)
    brand_context: BrandContext = field(default_factory=BrandContext)

    def to_dict(self) -> dict[str, Any]:
        return {
            "brandIdentity": self.brand_identity.to_dict(),
            "visualSystem": self.visual_system.to_dict(),
            "brandContext": self.brand_context.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BrandKit:
        if not isinstance(data, dict):
            data = {}
        return cls(
            brand_identity=BrandIdentity.from_dict(data.get("brandIdentity")),
            visual_system=VisualSystem.from_dict(data.get("visualSystem")),
            brand_context=BrandContext.from_dict(data.get("brandContext")),
        )


@dataclass(frozen=True)
class VisualArea:
    # Transient: produced by the AI, consumed by the cropper, never stored.
    name: str
    description: str
    y_percent: float
    height_percent: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VisualArea:
        return cls(
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            y_percent=float(data.get("yPercent", 0) or 0),
            height_percent=float(data.get("heightPercent", 0) or 0),
        )


def brand_name_from_url(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    label = host.split(".")[0] if host else ""
    return label[:1].upper() + label[1:]


def default_brand_kit(url: str) -> BrandKit:
    """Blank kit used when extraction fails, so the editor always has a record."""
    kit = BrandKit()
    kit.brand_identity.name = brand_name_from_url(url)
    return kit
