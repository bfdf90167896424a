from __future__ import annotations

import base64
import io
import math
from dataclasses import dataclass

from PIL import Image

from brandkit_extractor.models import MAX_VISUAL_AREAS, VisualArea

CROP_MAX_WIDTH = 800
CROP_JPEG_QUALITY = 80
# A crop never starts inside the last BOTTOM_MARGIN_PX of the page.
BOTTOM_MARGIN_PX = 100
MIN_CROP_HEIGHT_PX = 50


@dataclass(frozen=True)
class CroppedArea:
    name: str
    description: str
    image_data: str  # data:image/jpeg;base64,...
    box: tuple[int, int, int, int]


def crop_box(area: VisualArea, width: int, height: int) -> tuple[int, int, int, int] | None:
    """
    Convert a percentage-based vertical area into a full-width pixel box.

    Returns None when the clamped strip is 50 px tall or less.
    When height < 100 the start row is negative; that is passed through as-is.
    """
    y_start = math.floor(area.y_percent / 100 * height)
    raw_height = math.floor(area.height_percent / 100 * height)

    safe_y = min(y_start, height - BOTTOM_MARGIN_PX)
    safe_height = min(raw_height, height - safe_y)
    if safe_height <= MIN_CROP_HEIGHT_PX:
        return None
    return (0, safe_y, width, safe_y + safe_height)


def crop_regions(image: Image.Image, regions: list[VisualArea]) -> list[CroppedArea]:
    """
    Slice up to three visual areas out of a full-page screenshot.

    Output order follows input order; degenerate areas are dropped.
    """
    width, height = image.size
    out: list[CroppedArea] = []
    for area in regions[:MAX_VISUAL_AREAS]:
        box = crop_box(area, width, height)
        if box is None:
            continue
        strip = _downscale_to_width(image.crop(box), CROP_MAX_WIDTH)
        out.append(
            CroppedArea(
                name=area.name,
                description=area.description,
                image_data=to_jpeg_data_uri(strip, quality=CROP_JPEG_QUALITY),
                box=box,
            )
        )
    return out


def compress_upload(content: bytes, max_width: int, quality: int) -> str:
    """Downscale an uploaded logo/gallery image and return it as a JPEG data URI."""
    img = Image.open(io.BytesIO(content))
    img.load()
    return to_jpeg_data_uri(_downscale_to_width(img, max_width), quality=quality)


def to_jpeg_data_uri(img: Image.Image, quality: int) -> str:
    buf = io.BytesIO()
    img.convert("RGB").save(buf, format="JPEG", quality=quality)
    return "data:image/jpeg;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def to_png_data_uri(content: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(content).decode("ascii")


def _downscale_to_width(img: Image.Image, max_width: int) -> Image.Image:
    """
    Resize to max_width keeping aspect ratio; never upscales.
    """
    w, h = img.size
    if w <= max_width or w <= 0:
        return img
    new_h = max(1, int(round(h * max_width / w)))
    return img.resize((max_width, new_h), Image.Resampling.LANCZOS)
