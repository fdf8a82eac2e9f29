import pytest
from fastapi.testclient import TestClient

from sitebuilder import settings as settings_module
from sitebuilder.core.session import get_session_registry, reset_session_registry
from sitebuilder.generation.adapter import reset_generation_service
from sitebuilder.generation.concurrency import reset_generation_semaphore
from sitebuilder.main import app
from sitebuilder.memory.db import reset_engine
from sitebuilder.memory.persistence import set_persistence


@pytest.fixture(autouse=True)
def test_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DATA_ROOT", str(tmp_path / "data"))
    monkeypatch.setenv("GENERATION_MODE", "mock")
    monkeypatch.setenv("AUTO_SAVE_ENABLED", "false")
    monkeypatch.delenv("ADMIN_API_KEY", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    def _reset():
        settings_module.get_settings.cache_clear()
        reset_engine()
        reset_generation_service()
        reset_generation_semaphore()
        reset_session_registry()
        set_persistence(None)

    _reset()
    yield
    _reset()


def _create_project(client: TestClient) -> str:
    response = client.post(
        "/api/builder/projects",
        json={"name": "Acme", "description": "landing page", "website_type": "business"},
    )
    assert response.status_code == 201
    return response.json()["project_id"]


def _generate_sitemap(client: TestClient, project_id: str) -> None:
    response = client.post(f"/api/builder/projects/{project_id}/sitemap/generate", json={"prompt": "landing page"})
    assert response.status_code == 202
    assert response.json() == {"project_id": project_id, "kind": "sitemap", "status": "accepted"}


def test_generate_sitemap_is_accepted_and_completes():
    with TestClient(app) as client:
        project_id = _create_project(client)
        _generate_sitemap(client, project_id)

        state = client.get(f"/api/builder/projects/{project_id}/generation").json()
        assert state["sitemap"]["status"] == "success"
        sitemap = client.get(f"/api/builder/projects/{project_id}/sitemap").json()
        assert sitemap["pages"][0]["id"] == "home"

        steps = client.get(f"/api/builder/projects/{project_id}/steps").json()
        assert steps["completed_steps"] == ["sitemap"]
        assert steps["can_proceed"]["wireframe"] is True
        assert steps["can_proceed"]["style"] is False


def test_generation_in_flight_returns_conflict():
    with TestClient(app) as client:
        project_id = _create_project(client)
        _generate_sitemap(client, project_id)
        session = get_session_registry().get(project_id)
        session.state.generation["wireframe"].status = "generating"

        one = client.post(f"/api/builder/projects/{project_id}/wireframes/generate", json={"page_id": "home"})
        every = client.post(f"/api/builder/projects/{project_id}/wireframes/generate", json={})

        assert one.status_code == 409
        assert every.status_code == 409
        assert session.state.wireframes == {}


def test_unknown_project_is_not_found():
    with TestClient(app) as client:
        assert client.get("/api/builder/projects/does-not-exist").status_code == 404
        assert client.delete("/api/builder/projects/does-not-exist").status_code == 404


def test_regenerate_without_context():
    with TestClient(app) as client:
        project_id = _create_project(client)
        response = client.post(f"/api/builder/projects/{project_id}/style/regenerate")
        assert response.status_code == 422

        warnings = client.get(f"/api/builder/projects/{project_id}/warnings").json()
        assert warnings[-1]["code"] == "REGENERATE_UNAVAILABLE"
        assert client.post(f"/api/builder/projects/{project_id}/wireframes/missing/regenerate").status_code == 404


def test_page_edits_and_undo():
    with TestClient(app) as client:
        project_id = _create_project(client)
        _generate_sitemap(client, project_id)
        base = f"/api/builder/projects/{project_id}"

        added = client.post(f"{base}/sitemap/pages", json={"parent_id": "about", "title": "History"})
        assert added.status_code == 201
        assert client.post(f"{base}/sitemap/pages", json={"parent_id": "ghost"}).status_code == 404
        assert client.post(f"{base}/sitemap/pages/about/move", json={"new_parent_id": "about-team"}).status_code == 400
        assert client.patch(f"{base}/sitemap/pages/contact", json={"title": "Reach us"}).status_code == 200

        removed = client.delete(f"{base}/sitemap/pages/about")
        assert removed.status_code == 200
        assert "about-team" in removed.json()["affected_ids"]

        undo = client.post(f"{base}/history/undo").json()
        assert undo["moved"] is True
        assert undo["can_redo"] is True
        pages = [p["id"] for p in client.get(f"{base}/sitemap").json()["pages"]]
        assert "about" in pages
        assert "snapshot" not in client.get(f"{base}/history").json()["entries"][0]


def test_exports():
    with TestClient(app) as client:
        project_id = _create_project(client)
        base = f"/api/builder/projects/{project_id}"
        assert client.get(f"{base}/sitemap/export", params={"format": "xml"}).status_code == 404

        _generate_sitemap(client, project_id)
        xml = client.get(f"{base}/sitemap/export", params={"format": "xml", "base_url": "https://acme.test"})
        assert xml.status_code == 200
        assert xml.headers["content-type"].startswith("application/xml")
        assert "<loc>https://acme.test/about</loc>" in xml.text
        assert client.get(f"{base}/sitemap/export", params={"format": "yaml"}).status_code == 400

        style = client.post(
            f"{base}/style/generate",
            json={"brand_guidelines": {"name": "Acme"}, "design_style": "tech"},
        )
        assert style.status_code == 202
        css = client.get(f"{base}/style/export", params={"format": "css"})
        assert css.status_code == 200
        assert "--color-primary-500" in css.text


def test_import_rejects_garbage_and_accepts_export():
    with TestClient(app) as client:
        project_id = _create_project(client)
        _generate_sitemap(client, project_id)
        base = f"/api/builder/projects/{project_id}"

        assert client.post(f"{base}/import", json={"data": "{oops"}).status_code == 400

        exported = client.get(f"{base}/export").text
        response = client.post(f"{base}/import", json={"data": exported})
        assert response.status_code == 200
        assert response.json()["page_count"] == 7


def test_save_then_list_and_reload():
    with TestClient(app) as client:
        project_id = _create_project(client)
        _generate_sitemap(client, project_id)
        assert client.post(f"/api/builder/projects/{project_id}/save").status_code == 200

        listed = client.get("/api/builder/projects").json()
        assert [p["id"] for p in listed["projects"]] == [project_id]

        # drop the live session; the next request reloads it from storage
        assert client.post(f"/api/builder/projects/{project_id}/reset").status_code == 200
        summary = client.get(f"/api/builder/projects/{project_id}").json()
        assert summary["page_count"] == 7
        assert summary["completed_steps"] == ["sitemap"]


def test_diagnostics_endpoints():
    with TestClient(app) as client:
        project_id = _create_project(client)
        base = f"/api/builder/projects/{project_id}"

        error = client.post(f"{base}/errors", json={"code": "X", "message": "broken", "step": "sitemap"}).json()
        assert client.post(f"{base}/errors/{error['id']}/resolve").status_code == 200
        errors = client.get(f"{base}/errors").json()
        assert errors[0]["resolved"] is True
        assert client.get(f"{base}/errors", params={"unresolved": True}).json() == []
        assert client.post(f"{base}/errors/missing/resolve").status_code == 404


def test_api_key_is_enforced(monkeypatch):
    monkeypatch.setenv("ADMIN_API_KEY", "secret")
    settings_module.get_settings.cache_clear()
    with TestClient(app) as client:
        assert client.get("/api/builder/projects").status_code == 401
        assert client.get("/api/builder/projects", headers={"X-API-Key": "secret"}).status_code == 200
        assert client.get("/health").status_code == 200


def test_ui_state_selection():
    with TestClient(app) as client:
        project_id = _create_project(client)
        _generate_sitemap(client, project_id)
        base = f"/api/builder/projects/{project_id}"

        ui = client.put(f"{base}/ui", json={"selected_page_id": "contact", "sidebar_collapsed": True}).json()
        assert ui == {"selected_page_id": "contact", "sidebar_collapsed": True}
        assert client.put(f"{base}/ui", json={"selected_page_id": "ghost"}).status_code == 404
        assert client.get(base).json()["selected_page_id"] == "contact"


def test_page_edits_with_bad_values_leave_sitemap_intact():
    with TestClient(app) as client:
        project_id = _create_project(client)
        _generate_sitemap(client, project_id)
        base = f"/api/builder/projects/{project_id}"

        assert client.patch(f"{base}/sitemap/pages/home", json={"priority": "high"}).status_code == 422
        assert client.patch(f"{base}/sitemap/pages/home", json={"priority": 11}).status_code == 422
        assert client.post(f"{base}/sitemap/pages", json={"title": "Blog", "priority": 99}).status_code == 422

        nulled = client.patch(f"{base}/sitemap/pages/contact", json={"title": None})
        assert nulled.status_code == 400

        pages = {p["id"]: p for p in client.get(f"{base}/sitemap").json()["pages"]}
        assert pages["home"]["priority"] == 10
        assert pages["contact"]["title"] == "Contact"
        report = client.get(f"{base}/sitemap/validate")
        assert report.status_code == 200
        assert report.json()["is_valid"] is True


def test_import_without_project_keeps_session():
    with TestClient(app) as client:
        project_id = _create_project(client)
        base = f"/api/builder/projects/{project_id}"
        session = get_session_registry().get(project_id)

        response = client.post(f"{base}/import", json={"data": '{"project": null}'})
        assert response.status_code == 400
        assert response.json()["detail"][0]["code"] == "IMPORT_FAILED"

        assert get_session_registry().get(project_id) is session
        summary = client.get(base).json()
        assert summary["project"]["id"] == project_id


def test_websocket_streams_generation_events_and_status():
    with TestClient(app) as client:
        project_id = _create_project(client)
        with client.websocket_connect(f"/ws/builder/{project_id}") as ws:
            hello = ws.receive_json()
            assert hello["msg"] == "WebSocket connected"
            assert hello["project_id"] == project_id

            _generate_sitemap(client, project_id)
            assert ws.receive_json()["type"] == "generation.started"
            assert ws.receive_json()["type"] == "generation.completed"

            ws.send_json({"type": "command", "command": "status"})
            status = ws.receive_json()
            assert status["type"] == "status"
            assert status["data"]["page_count"] == 7
