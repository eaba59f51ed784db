"""
Tests for the render HTTP API.
"""

import re

from fastapi.testclient import TestClient
from playwright.async_api import Error as PlaywrightError

from md2pdf.app import build_app
from md2pdf.modules.render import RenderJob, RenderState

from .fakes import FAKE_PDF, FakeEngine, FakeEngineFactory

PNG = "data:image/png;base64,iVBORw0KGgo="


def _client(settings, **engine_kwargs) -> tuple[TestClient, FakeEngineFactory]:
    factory = FakeEngineFactory(**engine_kwargs)
    return TestClient(build_app(settings, engine_factory=factory)), factory


def test_generate_returns_pdf(client, engine_factory):
    resp = client.post("/api/generate", json={
        "markdown": "# Hello\n\nWorld",
        "theme": "github",
        "fileName": "notes",
    })

    assert resp.status_code == 200
    assert resp.content == FAKE_PDF
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.headers["content-length"] == str(len(FAKE_PDF))
    assert re.fullmatch(
        r"attachment; filename\*=UTF-8''notes-github-\d+\.pdf",
        resp.headers["content-disposition"],
    )

    # Defaults: fixed A4 pages at the 2K viewport
    engine = engine_factory.last
    assert engine.pdf_calls[0]["format"] == "A4"
    assert engine.viewport == {"width": 2560, "height": 1440}
    assert "<h1>Hello</h1>" in engine.documents[0]


def test_generate_single_page_options(client, engine_factory):
    resp = client.post("/api/generate", json={
        "markdown": "text",
        "forceSingle": True,
        "pageWidth": "210",
        "margin": "",
        "scaleFactor": 3,
        "resolution": "1280x720",
    })

    assert resp.status_code == 200
    engine = engine_factory.last
    assert engine.pdf_calls[0]["width"] == "210mm"
    assert engine.pdf_calls[0]["page_ranges"] == "1"
    assert engine.viewport == {"width": 1280, "height": 720}
    assert engine.device_scale_factor == 3
    assert "max-width: 210mm" in engine.documents[0]


def test_generate_non_ascii_file_name(client):
    resp = client.post("/api/generate", json={"markdown": "x", "fileName": "résumé"})
    assert resp.status_code == 200
    assert "filename*=UTF-8''r%C3%A9sum%C3%A9-atom-" in resp.headers["content-disposition"]


def test_generate_embeds_uploaded_images(client, engine_factory):
    resp = client.post("/api/generate", json={
        "markdown": "![a](img/chart.png)\n\n![b](ghost.png)",
        "images": [{"name": "chart.png", "dataUrl": PNG}],
    })

    assert resp.status_code == 200
    document = engine_factory.last.documents[0]
    assert f'src="{PNG}"' in document
    assert "Missing%20image%3A%20ghost.png" in document


def test_generate_unknown_theme(client, engine_factory):
    resp = client.post("/api/generate", json={"markdown": "x", "theme": "nope"})

    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "validation_error"
    assert 'Theme "nope" does not exist' in error["message"]
    assert engine_factory.engines == []


def test_generate_missing_markdown(client):
    resp = client.post("/api/generate", json={"theme": "atom"})
    assert resp.status_code == 400
    assert "markdown" in resp.json()["error"]["message"]


def test_generate_bad_resolution(client, engine_factory):
    resp = client.post("/api/generate", json={"markdown": "x", "resolution": "huge"})
    assert resp.status_code == 400
    assert engine_factory.engines == []


def test_generate_engine_failure(settings):
    client, _ = _client(settings, start_error=PlaywrightError("Browser launch failed"))
    with client:
        resp = client.post("/api/generate", json={"markdown": "x"})

    assert resp.status_code == 500
    error = resp.json()["error"]
    assert error["code"] == "render_failed"
    assert error["message"] == "Browser launch failed"


def test_generate_aborted_returns_no_content(settings):
    client, _ = _client(settings, pdf_error=PlaywrightError("Target closed"))
    with client:
        resp = client.post("/api/generate", json={"markdown": "x"})

    assert resp.status_code == 204
    assert resp.content == b""


def test_cancel_unknown_render(client):
    resp = client.post("/api/cancel", json={"renderId": "nope-1"})
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_cancel_missing_render_id(client):
    resp = client.post("/api/cancel", json={})
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Missing renderId"


def test_cancel_finished_render(client):
    resp = client.post("/api/generate", json={"markdown": "x", "renderId": "job-42"})
    assert resp.status_code == 200

    resp = client.post("/api/cancel", json={"renderId": "job-42"})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "message": "already finished"}

    # Query parameter form
    resp = client.post("/api/cancel?renderId=job-42")
    assert resp.status_code == 200


def test_list_themes(client):
    resp = client.get("/api/themes")

    assert resp.status_code == 200
    themes = {theme["name"]: theme for theme in resp.json()}
    assert set(themes) == {"vue", "atom", "light", "github", "monokai", "solarized"}
    assert themes["atom"]["dark"] is True
    assert themes["github"]["dark"] is False


def test_health_and_request_id(client):
    resp = client.get("/health", headers={"X-Request-ID": "req-1"})

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "active_renders": 0}
    assert resp.headers["x-request-id"] == "req-1"


def test_error_body_carries_request_id(client):
    resp = client.post("/api/cancel", json={"renderId": "nope"}, headers={"X-Request-ID": "req-2"})
    assert resp.json()["request_id"] == "req-2"


def test_cancel_engine_failure_reports_error(settings):
    app = build_app(settings, engine_factory=FakeEngineFactory())
    registry = app.state.job_registry
    engine = FakeEngine(close_error=RuntimeError("browser process did not exit"))
    registry.register(RenderJob(id="job-7", engine=engine, state=RenderState.AWAITING_ASYNC_RENDER))

    with TestClient(app) as client:
        resp = client.post("/api/cancel", json={"renderId": "job-7"})

    assert resp.status_code == 500
    error = resp.json()["error"]
    assert error["code"] == "cancel_failed"
    assert "browser process did not exit" in error["message"]
    assert "job-7" not in registry


def test_cancel_in_flight_job(settings):
    app = build_app(settings, engine_factory=FakeEngineFactory())
    engine = FakeEngine()
    app.state.job_registry.register(RenderJob(id="job-8", engine=engine, state=RenderState.MEASURING))

    with TestClient(app) as client:
        resp = client.post("/api/cancel", json={"renderId": "job-8"})

    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "message": "cancelled"}
    assert engine.closed
