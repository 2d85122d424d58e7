import io
import json
import sys
import zipfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1]))

from pwa_gen.application import get_background_runner, reset_state
from pwa_gen.core.settings import Settings


@pytest.fixture(autouse=True)
def reset_pipeline_state():
    reset_state()
    yield
    reset_state()


@pytest.fixture()
def client():
    from pwa_gen.app import create_app

    app = create_app(Settings(github_delay_seconds=0, validate_delay_seconds=0, max_workers=2))
    with TestClient(app) as test_client:
        yield test_client


def _project_zip(dependencies: dict[str, str] | None = None) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as bundle:
        bundle.writestr("package.json", json.dumps({"dependencies": dependencies or {"next": "14.0.0"}}))
        bundle.writestr("index.html", "<!doctype html>")
        bundle.writestr("src/main.tsx", "console.log('app')")
        bundle.writestr("src/App.tsx", "export default function App() {}")
    return buffer.getvalue()


def _upload(client, filename: str = "app.zip", payload: bytes | None = None) -> str:
    response = client.post(
        "/api/analyze",
        files={"file": (filename, payload if payload is not None else _project_zip(), "application/zip")},
    )
    assert response.status_code == 200
    return response.json()["job_id"]


def _poll(client, job_id: str) -> dict:
    assert get_background_runner().wait(timeout=5)
    response = client.get(f"/api/job/{job_id}")
    assert response.status_code == 200
    return response.json()


def test_end_to_end_workflow(client):
    # 1. upload archive
    job_id = _upload(client)

    # 2. poll until analysis finished
    job = _poll(client, job_id)
    assert job["status"] == "complete"
    assert job["input"] == {"name": "app.zip"}
    assert job["input_type"] == "zip"
    assert job["analysis"]["detected_stack"] == "Next.js"
    assert job["analysis"]["total_files"] == 4

    # 3. generate PWA assets
    response = client.post(f"/api/job/{job_id}/generate", json={"theme_color": "#0066FF"})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "generated"
    assert len(body["generated"]) == 4

    # 4. validate
    response = client.post(f"/api/job/{job_id}/validate")
    assert response.status_code == 200
    assert response.json()["status"] in {"validating", "validated"}
    job = _poll(client, job_id)
    assert job["status"] == "validated"
    assert job["validation"]["score"] == "100/100"

    # 5. export
    response = client.post(f"/api/job/{job_id}/export", json={"type": "zip"})
    assert response.status_code == 200
    artifact = response.json()
    assert artifact["type"] == "zip"
    assert artifact["filename"] == f"pwa-{job_id}.zip"

    job = _poll(client, job_id)
    assert job["status"] == "exported"
    assert job["export"]["type"] == "zip"


def test_github_analysis(client):
    response = client.post("/api/analyze", json={"github_url": "https://github.com/acme/storefront"})
    assert response.status_code == 200
    job = _poll(client, response.json()["job_id"])
    assert job["status"] == "complete"
    assert job["input"] == "https://github.com/acme/storefront"
    assert job["analysis"]["detected_stack"] == "Vite+React"


def test_invalid_github_url_ends_in_error(client):
    response = client.post("/api/analyze", json={"github_url": "https://gitlab.com/acme/storefront"})
    assert response.status_code == 200
    job = _poll(client, response.json()["job_id"])
    assert job["status"] == "error"
    assert "GitHub" in job["error"]


def test_analyze_rejects_bad_requests(client):
    assert client.post("/api/analyze", json={}).status_code == 400
    assert client.post("/api/analyze", content=b"raw", headers={"content-type": "text/plain"}).status_code == 400


def test_stage_out_of_order_is_conflict(client):
    job_id = _upload(client)
    _poll(client, job_id)

    response = client.post(f"/api/job/{job_id}/validate")
    assert response.status_code == 409

    response = client.post(f"/api/job/{job_id}/export", json={"type": "zip"})
    assert response.status_code == 409
    assert "validated" in response.json()["detail"]


def test_unknown_job_is_404(client):
    assert client.get("/api/job/does-not-exist").status_code == 404
    assert client.post("/api/job/does-not-exist/rerun").status_code == 404
    assert client.get("/api/job/does-not-exist/diagnostics").status_code == 404


def test_rerun_keeps_original(client):
    job_id = _upload(client)
    _poll(client, job_id)
    client.post(f"/api/job/{job_id}/generate", json={})

    response = client.post(f"/api/job/{job_id}/rerun")
    assert response.status_code == 200
    new_job_id = response.json()["new_job_id"]
    assert new_job_id != job_id

    rerun = _poll(client, new_job_id)
    assert rerun["status"] == "complete"
    assert rerun["input"] == {"name": "app.zip"}
    assert _poll(client, job_id)["status"] == "generated"


def test_diagnostics_for_finished_job(client):
    job_id = _upload(client)
    _poll(client, job_id)
    response = client.get(f"/api/job/{job_id}/diagnostics")
    assert response.status_code == 200
    report = response.json()
    assert report["status"] == "complete"
    assert report["stale"] is False


def test_history_pagination_and_clear(client):
    job_ids = [_upload(client, filename=f"app-{index}.zip") for index in range(5)]
    assert get_background_runner().wait(timeout=5)

    seen: list[str] = []
    cursor = None
    while True:
        params = {"limit": 2}
        if cursor:
            params["cursor"] = cursor
        page = client.get("/api/history", params=params).json()
        assert len(page["items"]) <= 2
        seen.extend(item["id"] for item in page["items"])
        cursor = page["next"]
        if cursor is None:
            break
    assert seen == job_ids

    response = client.delete("/api/history")
    assert response.json() == {"cleared_count": 5}
    assert client.get("/api/history").json() == {"items": [], "next": None}
    assert client.delete("/api/history").json() == {"cleared_count": 0}


def test_users_are_seeded_once(client):
    first = client.get("/api/users").json()
    second = client.get("/api/users").json()
    assert first == second
    assert [item["name"] for item in first["items"]] == ["User A", "User B"]

    created = client.post("/api/users", json={"name": "  Carol "}).json()
    assert created["name"] == "Carol"
    assert client.post("/api/users", json={"name": " "}).status_code == 422

    ids = [item["id"] for item in client.get("/api/users").json()["items"]]
    assert client.delete(f"/api/users/{ids[0]}").json() == {"id": ids[0], "deleted": True}
    assert client.delete(f"/api/users/{ids[0]}").json() == {"id": ids[0], "deleted": False}

    response = client.post("/api/users/delete-many", json={"ids": ids})
    assert response.json() == {"deleted_count": 2, "ids": ids}
    assert client.post("/api/users/delete-many", json={"ids": []}).status_code == 400


def test_chat_messages(client):
    chats = client.get("/api/chats").json()["items"]
    assert chats and chats[0]["title"] == "General"
    chat_id = chats[0]["id"]

    response = client.post(f"/api/chats/{chat_id}/messages", json={"user_id": "u1", "text": "ship it"})
    assert response.status_code == 200
    messages = client.get(f"/api/chats/{chat_id}/messages").json()["items"]
    assert messages[-1]["text"] == "ship it"

    assert client.get("/api/chats/nope/messages").status_code == 404
    created = client.post("/api/chats", json={"title": "Release"}).json()
    assert set(created) == {"id", "title"}
    assert client.post("/api/chats/delete-many", json={"ids": [created["id"], "nope"]}).json()["deleted_count"] == 1
