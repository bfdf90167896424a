"""
In-memory editing state for an open brand kit.

Edits are applied immediately to the held record and persisted after a quiet
period (debounce). `flush()` writes right away and is what an unload beacon
or app shutdown calls. A write already in flight is never cancelled by newer
edits; the store keeps whichever write lands last.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Awaitable, Callable

from brandkit_extractor.models import (
    MAX_CONTEXT_IMAGES,
    BrandContext,
    BrandIdentity,
    BrandKit,
    VisualSystem,
    normalize_colors,
)

logger = logging.getLogger(__name__)

PersistFn = Callable[[str, BrandKit], Awaitable[Any]]

IDENTITY_FIELDS = {"name", "tagline", "logo"}
VISUAL_FIELDS = {"colors", "typography", "baseAppearance"}
CONTEXT_FIELDS = {"overview", "keywords", "tones", "images"}
LIST_FIELDS = {"colors", "keywords", "tones", "images"}


def _check_fields(updates: dict[str, Any], allowed: set[str], section: str) -> None:
    unknown = set(updates) - allowed
    if unknown:
        raise ValueError(f"unknown {section} field(s): {', '.join(sorted(unknown))}")
    for name in LIST_FIELDS.intersection(updates):
        if not isinstance(updates[name], list):
            raise ValueError(f"{section}.{name} must be a list")


class BrandKitEditor:
    def __init__(
        self,
        project_id: str,
        kit: BrandKit,
        persist: PersistFn,
        debounce: float = 0.5,
    ) -> None:
        self.project_id = project_id
        self.kit = kit
        self.debounce = debounce
        self._persist = persist
        self._pending: asyncio.TimerHandle | None = None
        self._inflight: set[asyncio.Task[Any]] = set()
        self.dirty = False

    # -- section updaters (shallow merge, wire-format keys) -----------------

    def update_identity(self, updates: dict[str, Any]) -> BrandIdentity:
        _check_fields(updates, IDENTITY_FIELDS, "brandIdentity")
        merged = {**self.kit.brand_identity.to_dict(), **updates}
        self.kit.brand_identity = BrandIdentity.from_dict(merged)
        self._changed()
        return self.kit.brand_identity

    def update_visual_system(self, updates: dict[str, Any]) -> VisualSystem:
        _check_fields(updates, VISUAL_FIELDS, "visualSystem")
        merged = {**self.kit.visual_system.to_dict(), **updates}
        visual = VisualSystem.from_dict(merged)
        # An anti-crawl kit keeps its empty palette until the user picks colors.
        if visual.colors:
            visual.colors = normalize_colors(visual.colors)
        self.kit.visual_system = visual
        self._changed()
        return self.kit.visual_system

    def update_context(self, updates: dict[str, Any]) -> BrandContext:
        _check_fields(updates, CONTEXT_FIELDS, "brandContext")
        merged = {**self.kit.brand_context.to_dict(), **updates}
        self.kit.brand_context = BrandContext.from_dict(merged)
        self._changed()
        return self.kit.brand_context

    def replace(self, kit: BrandKit) -> BrandKit:
        """Swap in a whole kit, e.g. when restoring an earlier version."""
        self.kit = copy.deepcopy(kit)
        self._changed()
        return self.kit

    # -- list helpers ------------------------------------------------------

    def add_keyword(self, keyword: str) -> bool:
        return self._add_unique("keywords", keyword)

    def remove_keyword(self, keyword: str) -> bool:
        return self._remove_value("keywords", keyword)

    def add_tone(self, tone: str) -> bool:
        return self._add_unique("tones", tone)

    def remove_tone(self, tone: str) -> bool:
        return self._remove_value("tones", tone)

    def add_image(self, image: str) -> bool:
        images = self.kit.brand_context.images
        if len(images) >= MAX_CONTEXT_IMAGES:
            return False
        self.update_context({"images": [*images, image]})
        return True

    def remove_image(self, index: int) -> bool:
        images = list(self.kit.brand_context.images)
        if not 0 <= index < len(images):
            return False
        del images[index]
        self.update_context({"images": images})
        return True

    def _add_unique(self, field_name: str, value: str) -> bool:
        value = value.strip()
        current = getattr(self.kit.brand_context, field_name)
        if not value or value in current:
            return False
        self.update_context({field_name: [*current, value]})
        return True

    def _remove_value(self, field_name: str, value: str) -> bool:
        value = value.strip()
        current = getattr(self.kit.brand_context, field_name)
        if value not in current:
            return False
        self.update_context({field_name: [v for v in current if v != value]})
        return True

    # -- persistence -------------------------------------------------------

    @property
    def save_pending(self) -> bool:
        return self._pending is not None

    def _changed(self) -> None:
        self.dirty = True
        loop = asyncio.get_running_loop()
        if self._pending is not None:
            self._pending.cancel()
        self._pending = loop.call_later(self.debounce, self._fire)

    def _fire(self) -> None:
        self._pending = None
        task = asyncio.get_running_loop().create_task(self._write())
        self._inflight.add(task)
        task.add_done_callback(self._write_done)

    def _write_done(self, task: asyncio.Task[Any]) -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Auto-save failed for %s: %s", self.project_id, task.exception())

    async def _write(self) -> None:
        snapshot = copy.deepcopy(self.kit)
        self.dirty = False
        try:
            await self._persist(self.project_id, snapshot)
        except Exception:
            self.dirty = True
            raise

    def cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    async def flush(self) -> None:
        """Persist now if anything is unsaved; waits for writes already in flight."""
        self.cancel_pending()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        if self.dirty:
            await self._write()


class EditorRegistry:
    """One editor per open project, owned by the running app."""

    def __init__(self, load: Callable[[str], BrandKit], persist: PersistFn, debounce: float = 0.5) -> None:
        self._load = load
        self._persist = persist
        self.debounce = debounce
        self._editors: dict[str, BrandKitEditor] = {}

    def get(self, project_id: str) -> BrandKitEditor:
        editor = self._editors.get(project_id)
        if editor is None:
            editor = BrandKitEditor(project_id, self._load(project_id), self._persist, debounce=self.debounce)
            self._editors[project_id] = editor
        return editor

    def peek(self, project_id: str) -> BrandKitEditor | None:
        return self._editors.get(project_id)

    async def close(self, project_id: str, flush: bool = True) -> None:
        editor = self._editors.pop(project_id, None)
        if editor is None:
            return
        if flush:
            await editor.flush()
        else:
            editor.cancel_pending()

    async def flush_all(self) -> None:
        for editor in list(self._editors.values()):
            try:
                await editor.flush()
            except Exception as exc:
                logger.error("Flush failed for %s: %s", editor.project_id, exc)
