from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable

import httpx
from fastapi import Body, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from brandkit_extractor import __version__
from brandkit_extractor.capture.screenshot import ScreenshotService
from brandkit_extractor.config import Settings, configure_logging
from brandkit_extractor.editor import BrandKitEditor, EditorRegistry
from brandkit_extractor.errors import BrandKitError
from brandkit_extractor.extraction.orchestrator import BrandExtractor, capture_screenshot, normalize_url
from brandkit_extractor.imaging.crop import compress_upload
from brandkit_extractor.models import MAX_CONTEXT_IMAGES, BrandKit, default_brand_kit
from brandkit_extractor.providers import build_provider
from brandkit_extractor.providers.base import VisionProvider
from brandkit_extractor.storage import Project, ProjectStore

logger = logging.getLogger(__name__)

# Upload compression, matching what the editor used to do in the browser.
LOGO_MAX_WIDTH, LOGO_QUALITY = 400, 80
GALLERY_MAX_WIDTH, GALLERY_QUALITY = 300, 70

ProviderFactory = Callable[[Settings], VisionProvider]


class UrlRequest(BaseModel):
    url: str | None = Field(None, description="Website to extract a brand kit from")


class ValueRequest(BaseModel):
    value: str = Field(..., description="Keyword or tone to add")


def create_app(
    settings: Settings | None = None,
    provider_factory: ProviderFactory = build_provider,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)

    store = ProjectStore(settings.data_dir)

    async def persist(project_id: str, kit: BrandKit) -> None:
        await asyncio.to_thread(store.save_brand_kit, project_id, kit)

    editors = EditorRegistry(
        load=lambda project_id: store.read_project(project_id).brand_kit,
        persist=persist,
        debounce=settings.editor_debounce_s,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = http_client or httpx.AsyncClient()
        app.state.http = client
        try:
            yield
        finally:
            await editors.flush_all()
            if http_client is None:
                await client.aclose()

    app = FastAPI(title="brandkit_extractor", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.editors = editors
    app.state.provider_factory = provider_factory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_origin_regex=r"https://.*\.vercel\.app",
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(BrandKitError)
    async def brandkit_error_handler(request: Request, exc: BrandKitError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error", "message": str(exc)})

    _register_routes(app)
    return app


def _extractor(request: Request) -> BrandExtractor:
    state = request.app.state
    provider = state.provider_factory(state.settings)
    return BrandExtractor(state.settings, provider, state.http)


def _store(request: Request) -> ProjectStore:
    return request.app.state.store


def _editors(request: Request) -> EditorRegistry:
    return request.app.state.editors


def _open_editor(request: Request, project_id: str) -> BrandKitEditor:
    try:
        return _editors(request).get(project_id)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="project not found")


def _read_project(request: Request, project_id: str) -> Project:
    try:
        proj = _store(request).read_project(project_id)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="project not found")
    # Unsaved edits in an open editor are the freshest view of the record.
    editor = _editors(request).peek(project_id)
    if editor is not None:
        proj.brand_kit = editor.kit
    return proj


def _project_payload(proj: Project, editor: BrandKitEditor | None = None) -> dict[str, Any]:
    out = proj.to_dict()
    out["savePending"] = bool(editor and (editor.dirty or editor.save_pending))
    return out


def _apply(editor: BrandKitEditor, fn: Callable[[dict[str, Any]], Any], updates: dict[str, Any]) -> dict[str, Any]:
    try:
        section = fn(updates)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return section.to_dict()


async def _upload_data_uri(file: UploadFile, max_width: int, quality: int) -> str:
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="upload must be an image")
    content = await file.read()
    try:
        return compress_upload(content, max_width=max_width, quality=quality)
    except OSError as exc:
        raise HTTPException(status_code=400, detail=f"unreadable image: {exc}") from exc


def _register_routes(app: FastAPI) -> None:
    @app.get("/")
    def root() -> dict[str, str]:
        return {"status": "ok", "service": "Brand Kit API", "version": __version__}

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "healthy"}

    # -- extraction ------------------------------------------------------

    @app.api_route("/api/extract", methods=["GET", "POST"])
    async def extract(request: Request, url: str | None = None) -> dict[str, Any]:
        if url is None and request.method == "POST":
            try:
                body = await request.json()
            except ValueError:
                body = {}
            if isinstance(body, dict) and isinstance(body.get("url"), str):
                url = body["url"]
        target = normalize_url(url)
        extractor = _extractor(request)
        try:
            result = await extractor.extract(target)
        except BrandKitError as exc:
            logger.error("Extract error for %s: %s", target, exc.message)
            raise
        return result.to_response()

    @app.get("/api/screenshot")
    async def screenshot(request: Request, url: str | None = None) -> dict[str, Any]:
        target = normalize_url(url)
        state = request.app.state
        screenshots = ScreenshotService.from_settings(state.http, state.settings)
        result = await capture_screenshot(screenshots, state.http, target, html_timeout=state.settings.html_timeout_s)
        return result.to_response()

    # -- projects --------------------------------------------------------

    @app.get("/api/projects")
    def list_projects(request: Request) -> dict[str, Any]:
        editors = _editors(request)
        out = []
        for proj in _store(request).list_projects():
            editor = editors.peek(proj.project_id)
            if editor is not None:
                proj.brand_kit = editor.kit
            out.append(_project_payload(proj, editor))
        return {"projects": out}

    @app.post("/api/projects", status_code=201)
    async def create_project(request: Request, payload: UrlRequest) -> dict[str, Any]:
        target = normalize_url(payload.url)
        error: dict[str, str] | None = None
        try:
            result = await _extractor(request).extract(target)
            kit = result.brand_kit
        except BrandKitError as exc:
            # The editor must always get a record, so a failed extraction
            # still produces a project with the default kit.
            logger.warning("Extraction failed for %s, using default kit: %s", target, exc.message)
            kit = default_brand_kit(target)
            error = exc.to_payload()
        proj = _store(request).create_project(url=target, brand_kit=kit)
        return {"project": _project_payload(proj), "extracted": error is None, "error": error}

    @app.get("/api/projects/{project_id}")
    def get_project(request: Request, project_id: str) -> dict[str, Any]:
        proj = _read_project(request, project_id)
        return {"project": _project_payload(proj, _editors(request).peek(project_id))}

    @app.patch("/api/projects/{project_id}/identity")
    async def update_identity(request: Request, project_id: str, updates: dict[str, Any] = Body(...)):
        editor = _open_editor(request, project_id)
        return {"brandIdentity": _apply(editor, editor.update_identity, updates)}

    @app.patch("/api/projects/{project_id}/visual-system")
    async def update_visual_system(request: Request, project_id: str, updates: dict[str, Any] = Body(...)):
        editor = _open_editor(request, project_id)
        return {"visualSystem": _apply(editor, editor.update_visual_system, updates)}

    @app.patch("/api/projects/{project_id}/context")
    async def update_context(request: Request, project_id: str, updates: dict[str, Any] = Body(...)):
        editor = _open_editor(request, project_id)
        return {"brandContext": _apply(editor, editor.update_context, updates)}

    @app.post("/api/projects/{project_id}/keywords")
    async def add_keyword(request: Request, project_id: str, payload: ValueRequest):
        editor = _open_editor(request, project_id)
        added = editor.add_keyword(payload.value)
        return {"added": added, "keywords": editor.kit.brand_context.keywords}

    @app.delete("/api/projects/{project_id}/keywords/{keyword}")
    async def remove_keyword(request: Request, project_id: str, keyword: str):
        editor = _open_editor(request, project_id)
        removed = editor.remove_keyword(keyword)
        return {"removed": removed, "keywords": editor.kit.brand_context.keywords}

    @app.post("/api/projects/{project_id}/tones")
    async def add_tone(request: Request, project_id: str, payload: ValueRequest):
        editor = _open_editor(request, project_id)
        added = editor.add_tone(payload.value)
        return {"added": added, "tones": editor.kit.brand_context.tones}

    @app.delete("/api/projects/{project_id}/tones/{tone}")
    async def remove_tone(request: Request, project_id: str, tone: str):
        editor = _open_editor(request, project_id)
        removed = editor.remove_tone(tone)
        return {"removed": removed, "tones": editor.kit.brand_context.tones}

    @app.post("/api/projects/{project_id}/images")
    async def add_image(request: Request, project_id: str, file: UploadFile = File(...)):
        editor = _open_editor(request, project_id)
        if len(editor.kit.brand_context.images) >= MAX_CONTEXT_IMAGES:
            raise HTTPException(status_code=400, detail=f"at most {MAX_CONTEXT_IMAGES} images per kit")
        data_uri = await _upload_data_uri(file, GALLERY_MAX_WIDTH, GALLERY_QUALITY)
        editor.add_image(data_uri)
        return {"images": editor.kit.brand_context.images, "count": len(editor.kit.brand_context.images)}

    @app.delete("/api/projects/{project_id}/images/{index}")
    async def remove_image(request: Request, project_id: str, index: int):
        editor = _open_editor(request, project_id)
        if not editor.remove_image(index):
            raise HTTPException(status_code=404, detail="image not found")
        return {"images": editor.kit.brand_context.images, "count": len(editor.kit.brand_context.images)}

    @app.post("/api/projects/{project_id}/logo")
    async def upload_logo(request: Request, project_id: str, file: UploadFile = File(...)):
        editor = _open_editor(request, project_id)
        data_uri = await _upload_data_uri(file, LOGO_MAX_WIDTH, LOGO_QUALITY)
        return {"brandIdentity": editor.update_identity({"logo": data_uri}).to_dict()}

    @app.post("/api/projects/{project_id}/save")
    async def save_project(request: Request, project_id: str):
        editor = _open_editor(request, project_id)
        await editor.flush()
        return {"project": _project_payload(_read_project(request, project_id), editor)}

    @app.post("/api/projects/{project_id}/flush")
    async def flush_project(request: Request, project_id: str):
        # Unload beacon: write whatever is pending, if the project is open at all.
        editor = _editors(request).peek(project_id)
        if editor is not None:
            await editor.flush()
        return {"flushed": editor is not None}

    @app.delete("/api/projects/{project_id}")
    async def delete_project(request: Request, project_id: str):
        store = _store(request)
        await _editors(request).close(project_id, flush=False)
        deleted = store.delete_project(project_id)
        if not deleted:
            # The index may be stale (another worker created the project); retry once.
            store.refresh()
            deleted = store.delete_project(project_id)
        if not deleted:
            raise HTTPException(status_code=404, detail="project not found")
        return {"deleted": project_id}

    # -- versions --------------------------------------------------------

    @app.get("/api/projects/{project_id}/versions")
    def list_versions(request: Request, project_id: str):
        store = _store(request)
        if not store.exists(project_id):
            raise HTTPException(status_code=404, detail="project not found")
        return {"versions": [v.to_dict(include_data=False) for v in store.list_versions(project_id)]}

    @app.get("/api/projects/{project_id}/versions/{version_number}")
    def get_version(request: Request, project_id: str, version_number: int):
        try:
            version = _store(request).read_version(project_id, version_number)
        except FileNotFoundError:
            raise HTTPException(status_code=404, detail="version not found")
        return {"version": version.to_dict()}

    @app.post("/api/projects/{project_id}/versions/{version_number}/restore")
    async def restore_version(request: Request, project_id: str, version_number: int):
        try:
            version = _store(request).read_version(project_id, version_number)
        except FileNotFoundError:
            raise HTTPException(status_code=404, detail="version not found")
        editor = _open_editor(request, project_id)
        editor.replace(version.data)
        await editor.flush()
        return {"project": _project_payload(_read_project(request, project_id), editor)}


app = create_app()
