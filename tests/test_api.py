"""
HTTP-level tests for the FastAPI service.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from brandkit_extractor.api.app import create_app
from brandkit_extractor.providers import build_provider

from conftest import FakeProvider, make_png, make_transport


def build_client(settings, provider=None, transport=None, provider_factory=None):
    if provider_factory is None:
        provider = provider or FakeProvider()
        provider_factory = lambda s: provider  # noqa: E731
    http = httpx.AsyncClient(transport=transport or make_transport(png=make_png()))
    return TestClient(create_app(settings, provider_factory=provider_factory, http_client=http))


@pytest.fixture
def client(settings):
    with build_client(settings) as c:
        yield c


def new_project(client, url="https://acme.test/"):
    resp = client.post("/api/projects", json={"url": url})
    assert resp.status_code == 201
    return resp.json()["project"]


class TestService:
    def test_root_and_health(self, client):
        assert client.get("/").json()["service"] == "Brand Kit API"
        assert client.get("/health").json() == {"status": "healthy"}

    def test_cors_allows_vercel_previews(self, client):
        resp = client.get("/health", headers={"Origin": "https://my-branch.vercel.app"})
        assert resp.headers["access-control-allow-origin"] == "https://my-branch.vercel.app"

    def test_cors_rejects_unknown_origin(self, client):
        resp = client.get("/health", headers={"Origin": "https://evil.test"})
        assert "access-control-allow-origin" not in resp.headers


class TestExtractRoute:
    def test_missing_url(self, client):
        resp = client.get("/api/extract")
        assert resp.status_code == 400
        assert resp.json()["error"] == "URL is required"

    def test_missing_api_key(self, settings):
        settings.openai_api_key = None
        with build_client(settings, provider_factory=build_provider) as c:
            resp = c.get("/api/extract", params={"url": "https://acme.test/"})

        assert resp.status_code == 500
        assert resp.json() == {"error": "API key not configured", "message": "OPENAI_API_KEY is not set"}

    def test_success_payload(self, client):
        resp = client.get("/api/extract", params={"url": "acme.test"})
        body = resp.json()

        assert resp.status_code == 200
        assert body["success"] is True
        assert body["hasScreenshot"] is True
        assert body["visualImagesCount"] == 3
        assert body["data"]["brandIdentity"]["name"] == "Acme"
        assert len(body["data"]["visualSystem"]["colors"]) == 4
        assert "visualAreas" not in body["data"]

    def test_post_body(self, client):
        resp = client.post("/api/extract", json={"url": "https://acme.test/"})
        assert resp.status_code == 200
        assert resp.json()["success"] is True

    def test_reply_without_json(self, settings):
        with build_client(settings, provider=FakeProvider("no idea")) as c:
            resp = c.get("/api/extract", params={"url": "https://acme.test/"})

        assert resp.status_code == 500
        assert resp.json() == {"error": "Extraction failed", "message": "No valid JSON in AI response"}

    def test_both_capture_paths_fail(self, settings):
        with build_client(settings, transport=make_transport(png=None, html=None)) as c:
            resp = c.get("/api/extract", params={"url": "https://acme.test/"})

        assert resp.status_code == 500
        assert resp.json()["message"] == "Both screenshot and HTML extraction failed"


class TestScreenshotRoute:
    def test_screenshot(self, client):
        body = client.get("/api/screenshot", params={"url": "https://acme.test/"}).json()

        assert body["success"] is True
        assert body["screenshot"].startswith("data:image/png;base64,")
        assert body["metadata"]["themeColor"] == "#ff5500"

    def test_not_configured(self, settings):
        settings.screenshot_api_key = None
        with build_client(settings) as c:
            resp = c.get("/api/screenshot", params={"url": "https://acme.test/"})

        assert resp.status_code == 500
        assert resp.json()["error"] == "API key not configured"


class TestProjects:
    def test_create_list_get(self, client):
        proj = new_project(client)

        assert proj["brandIdentity"]["name"] == "Acme"
        assert len(proj["brandContext"]["images"]) == 3
        assert proj["savePending"] is False

        listed = client.get("/api/projects").json()["projects"]
        assert [p["id"] for p in listed] == [proj["id"]]
        assert client.get(f"/api/projects/{proj['id']}").json()["project"]["url"] == "https://acme.test/"

    def test_failed_extraction_still_creates_default_project(self, settings):
        with build_client(settings, transport=make_transport(png=None, html=None)) as c:
            resp = c.post("/api/projects", json={"url": "https://www.acme.test/"})

        body = resp.json()
        assert resp.status_code == 201
        assert body["extracted"] is False
        assert body["error"]["error"] == "Failed to capture website"
        assert body["project"]["brandIdentity"]["name"] == "Acme"
        assert body["project"]["visualSystem"]["colors"] == ["#FF6B4A", "#4A7BF7", "#22C55E", "#9333EA"]

    def test_unknown_project(self, client):
        assert client.get("/api/projects/nope").status_code == 404
        assert client.patch("/api/projects/nope/identity", json={"name": "x"}).status_code == 404

    def test_patch_sections(self, client):
        pid = new_project(client)["id"]
        client.app.state.editors.debounce = 30

        resp = client.patch(f"/api/projects/{pid}/identity", json={"tagline": "Lift off"})
        assert resp.json()["brandIdentity"]["tagline"] == "Lift off"

        resp = client.patch(f"/api/projects/{pid}/visual-system", json={"colors": ["#000000"]})
        assert resp.json()["visualSystem"]["colors"] == ["#000000", "#888888", "#888888", "#888888"]

        resp = client.patch(f"/api/projects/{pid}/context", json={"bogus": 1})
        assert resp.status_code == 400

        project = client.get(f"/api/projects/{pid}").json()["project"]
        assert project["brandIdentity"]["tagline"] == "Lift off"
        assert project["savePending"] is True

    def test_keywords_and_tones(self, client):
        pid = new_project(client)["id"]

        assert client.post(f"/api/projects/{pid}/keywords", json={"value": "fuel"}).json()["added"] is True
        assert client.post(f"/api/projects/{pid}/keywords", json={"value": "fuel"}).json()["added"] is False
        assert "fuel" not in client.delete(f"/api/projects/{pid}/keywords/fuel").json()["keywords"]

        tones = client.post(f"/api/projects/{pid}/tones", json={"value": "Calm"}).json()["tones"]
        assert tones == ["Bold", "Calm"]

    def test_image_cap_and_removal(self, client):
        pid = new_project(client)["id"]
        upload = {"file": ("shot.png", make_png(600, 300), "image/png")}

        for expected in (4, 5, 6):
            resp = client.post(f"/api/projects/{pid}/images", files=upload)
            assert resp.json()["count"] == expected
        assert resp.json()["images"][-1].startswith("data:image/jpeg;base64,")

        assert client.post(f"/api/projects/{pid}/images", files=upload).status_code == 400
        assert client.delete(f"/api/projects/{pid}/images/9").status_code == 404
        assert client.delete(f"/api/projects/{pid}/images/0").json()["count"] == 5

    def test_non_image_upload_rejected(self, client):
        pid = new_project(client)["id"]
        resp = client.post(f"/api/projects/{pid}/logo", files={"file": ("a.txt", b"hello", "text/plain")})
        assert resp.status_code == 400

    def test_logo_upload(self, client):
        pid = new_project(client)["id"]
        resp = client.post(f"/api/projects/{pid}/logo", files={"file": ("l.png", make_png(800, 200), "image/png")})
        assert resp.json()["brandIdentity"]["logo"].startswith("data:image/jpeg;base64,")


class TestSaveAndVersions:
    def test_save_creates_version_and_restore(self, client):
        pid = new_project(client)["id"]
        client.patch(f"/api/projects/{pid}/identity", json={"name": "Renamed"})

        saved = client.post(f"/api/projects/{pid}/save").json()["project"]
        assert saved["brandIdentity"]["name"] == "Renamed"
        assert saved["currentVersion"] == 1
        assert saved["savePending"] is False

        versions = client.get(f"/api/projects/{pid}/versions").json()["versions"]
        assert [v["versionNumber"] for v in versions] == [1]
        old = client.get(f"/api/projects/{pid}/versions/1").json()["version"]
        assert old["data"]["brandIdentity"]["name"] == "Acme"

        restored = client.post(f"/api/projects/{pid}/versions/1/restore").json()["project"]
        assert restored["brandIdentity"]["name"] == "Acme"
        assert restored["currentVersion"] == 2

    def test_missing_version(self, client):
        pid = new_project(client)["id"]
        assert client.get(f"/api/projects/{pid}/versions/3").status_code == 404
        assert client.post(f"/api/projects/{pid}/versions/3/restore").status_code == 404
        assert client.get("/api/projects/nope/versions").status_code == 404

    def test_flush_beacon(self, client):
        pid = new_project(client)["id"]
        assert client.post(f"/api/projects/{pid}/flush").json() == {"flushed": False}

        client.post(f"/api/projects/{pid}/tones", json={"value": "Warm"})
        assert client.post(f"/api/projects/{pid}/flush").json() == {"flushed": True}
        assert "Warm" in client.app.state.store.read_project(pid).brand_kit.brand_context.tones

    def test_pending_edits_flushed_on_shutdown(self, settings):
        settings.editor_debounce_s = 30
        with build_client(settings) as c:
            pid = new_project(c)["id"]
            c.post(f"/api/projects/{pid}/keywords", json={"value": "late"})
            store = c.app.state.store

        assert "late" in store.read_project(pid).brand_kit.brand_context.keywords


class TestDelete:
    def test_delete(self, client):
        pid = new_project(client)["id"]
        client.patch(f"/api/projects/{pid}/identity", json={"name": "Gone"})

        assert client.delete(f"/api/projects/{pid}").json() == {"deleted": pid}
        assert client.get(f"/api/projects/{pid}").status_code == 404
        assert client.delete(f"/api/projects/{pid}").status_code == 404

    def test_delete_project_created_elsewhere(self, client, settings):
        from brandkit_extractor.models import default_brand_kit
        from brandkit_extractor.storage import ProjectStore

        other = ProjectStore(settings.data_dir).create_project("https://b.test/", default_brand_kit("https://b.test/"))
        assert client.delete(f"/api/projects/{other.project_id}").status_code == 200


class TestMalformedReply:
    REPLY = '{"brandIdentity": "Acme", "visualSystem": ["#fff"], "brandContext": "x"}'

    def test_extract_reports_extraction_failed(self, settings):
        with build_client(settings, provider=FakeProvider(self.REPLY)) as c:
            resp = c.get("/api/extract", params={"url": "https://acme.test/"})

        assert resp.status_code == 500
        assert resp.json() == {"error": "Extraction failed", "message": "Malformed brand kit in AI response"}

    def test_create_project_falls_back_to_default_kit(self, settings):
        with build_client(settings, provider=FakeProvider(self.REPLY)) as c:
            resp = c.post("/api/projects", json={"url": "https://acme.test/"})

        body = resp.json()
        assert resp.status_code == 201
        assert body["extracted"] is False
        assert body["error"]["error"] == "Extraction failed"
        assert body["project"]["brandIdentity"]["name"] == "Acme"
        assert len(body["project"]["visualSystem"]["colors"]) == 4


class TestListPatchValidation:
    def test_non_list_values_rejected(self, client):
        pid = new_project(client)["id"]

        assert client.patch(f"/api/projects/{pid}/visual-system", json={"colors": "#123456"}).status_code == 400
        assert client.patch(f"/api/projects/{pid}/context", json={"keywords": "c"}).status_code == 400

        project = client.get(f"/api/projects/{pid}").json()["project"]
        assert len(project["visualSystem"]["colors"]) == 4
        assert project["brandContext"]["keywords"] == ["rockets", "space"]

    def test_delete_keyword_ignores_surrounding_spaces(self, client):
        pid = new_project(client)["id"]
        client.post(f"/api/projects/{pid}/keywords", json={"value": " foo"})

        resp = client.delete(f"/api/projects/{pid}/keywords/%20foo")
        assert resp.json()["removed"] is True
        assert "foo" not in resp.json()["keywords"]
