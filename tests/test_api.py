"""HTTP surface exercised through FastAPI's TestClient."""

import asyncio
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from config import Settings
from main import create_app


@pytest.fixture
def app(db_path):
    return create_app(Settings(db_path=str(db_path)))


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def _add(client, text="Buy milk", cycle="1h"):
    resp = client.post("/api/tasks", json={"text": text, "cycle": cycle})
    assert resp.status_code == 201, resp.text
    return resp.json()


# ─── Tasks ────────────────────────────────────────────────────────────

def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["tasks"] == 0


def test_add_and_list(client):
    task = _add(client)
    assert task["text"] == "Buy milk"
    assert task["cycle"] == "1h"
    assert "dueAt" in task
    assert "completedAt" not in task

    listed = client.get("/api/tasks").json()
    assert [t["id"] for t in listed] == [task["id"]]


def test_add_strips_text_and_defaults_cycle(client):
    resp = client.post("/api/tasks", json={"text": "  padded  "})
    assert resp.status_code == 201
    body = resp.json()
    assert body["text"] == "padded"
    assert body["cycle"] == ""
    assert "dueAt" not in body


@pytest.mark.parametrize("payload", [{"text": ""}, {"text": "   "}, {"cycle": "1d"}])
def test_add_rejects_empty_text(client, payload):
    resp = client.post("/api/tasks", json=payload)
    assert resp.status_code == 400
    assert "text" in resp.json()["detail"]
    assert client.get("/api/tasks").json() == []


def test_add_rejects_malformed_json(client):
    resp = client.post("/api/tasks", content="{bad", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid JSON"


def test_get_task(client):
    task = _add(client)
    assert client.get(f"/api/tasks/{task['id']}").json()["id"] == task["id"]
    assert client.get("/api/tasks/missing").status_code == 404


# ─── Subtasks and status ──────────────────────────────────────────────

def test_subtask_flow(client):
    task = _add(client)
    resp = client.post(f"/api/tasks/{task['id']}/subtask", json={"text": "2%", "cycle": ""})
    assert resp.status_code == 201
    sub = resp.json()

    parent = client.get(f"/api/tasks/{task['id']}").json()
    assert [s["id"] for s in parent["subtasks"]] == [sub["id"]]

    resp = client.patch(f"/api/tasks/{sub['id']}/status", json={"complete": True})
    assert resp.status_code == 200
    assert "completedAt" in client.get(f"/api/tasks/{task['id']}").json()

    resp = client.patch(
        f"/api/tasks/{task['id']}/subtasks/{sub['id']}/status", json={"complete": False}
    )
    assert resp.status_code == 200
    assert "completedAt" not in client.get(f"/api/tasks/{task['id']}").json()


def test_subtask_missing_parent(client):
    resp = client.post("/api/tasks/missing/subtask", json={"text": "orphan"})
    assert resp.status_code == 404


def test_subtask_empty_text(client):
    task = _add(client)
    resp = client.post(f"/api/tasks/{task['id']}/subtask", json={"text": ""})
    assert resp.status_code == 400


def test_status_errors(client):
    assert client.patch("/api/tasks/missing/status", json={"complete": True}).status_code == 404
    task = _add(client)
    assert client.patch(f"/api/tasks/{task['id']}/status", json={}).status_code == 400
    resp = client.patch(f"/api/tasks/{task['id']}/subtasks/missing/status", json={"complete": True})
    assert resp.status_code == 404


# ─── Deletes ──────────────────────────────────────────────────────────

def test_delete(client):
    task = _add(client)
    sub = client.post(f"/api/tasks/{task['id']}/subtask", json={"text": "child"}).json()

    assert client.delete(f"/api/tasks/{task['id']}/subtasks/{sub['id']}").status_code == 200
    assert client.delete(f"/api/tasks/{task['id']}/subtasks/{sub['id']}").status_code == 404

    assert client.delete(f"/api/tasks/{task['id']}").status_code == 200
    assert client.delete(f"/api/tasks/{task['id']}").status_code == 404
    assert client.get("/api/tasks").json() == []


def test_persist_error_is_500(client, app, db_path):
    db_path.unlink()
    db_path.mkdir()
    resp = client.post("/api/tasks", json={"text": "unsaved"})
    assert resp.status_code == 500
    assert [t.text for t in app.state.store.list_tasks()] == ["unsaved"]


def test_state_survives_restart(client, db_path):
    task = _add(client)
    restarted = create_app(Settings(db_path=str(db_path)))
    with TestClient(restarted) as c:
        assert [t["id"] for t in c.get("/api/tasks").json()] == [task["id"]]


# ─── Pages ────────────────────────────────────────────────────────────

@pytest.mark.parametrize("path", ["/", "/kanban", "/gantt", "/calendar"])
def test_pages_render(client, path):
    _add(client, text="Water plants", cycle="1h")
    resp = client.get(path)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    if path != "/calendar":
        assert "Water plants" in resp.text


def test_calendar_month_navigation(client):
    resp = client.get("/calendar", params={"year": 2026, "month": 12})
    assert resp.status_code == 200
    assert "December 2026" in resp.text
    assert "year=2027&amp;month=1" in resp.text or "year=2027&month=1" in resp.text


def test_calendar_rejects_bad_month(client):
    assert client.get("/calendar", params={"month": 13}).status_code == 400


def test_calendar_shows_tasks_due_this_month(client):
    _add(client, text="Due soon", cycle="5m")
    now = datetime.now(timezone.utc)
    resp = client.get("/calendar", params={"year": now.year, "month": now.month})
    # 5 minutes ahead can cross into next month right at midnight on the last day
    if now.day < 28:
        assert "Due soon" in resp.text


def test_static_assets(client):
    assert client.get("/static/app.js").status_code == 200


# ─── Live updates ─────────────────────────────────────────────────────

def test_updates_stream_response(app):
    """The route returns an event stream that registers and cleans up its subscriber."""
    route = next(r for r in app.routes if getattr(r, "path", None) == "/api/updates")
    notifier = app.state.notifier

    async def receive():
        return {"type": "http.disconnect"}

    async def scenario():
        request = Request({"type": "http", "method": "GET", "path": "/api/updates", "headers": []}, receive)
        response = await route.endpoint(request)

        assert response.media_type == "text/event-stream"
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"
        assert notifier.subscriber_count == 0, "subscribing waits for the body"

        chunks = [chunk async for chunk in response.body_iterator]
        assert chunks == [": connected\n\n"]
        assert notifier.subscriber_count == 0

    asyncio.run(scenario())


@pytest.mark.parametrize("params", [{"year": 1, "month": 1}, {"year": 9999, "month": 12}])
def test_calendar_rejects_years_at_the_date_limits(client, params):
    assert client.get("/calendar", params=params).status_code == 400


@pytest.mark.parametrize("params", [{"year": 2, "month": 1}, {"year": 9998, "month": 12}])
def test_calendar_renders_edge_months(client, params):
    assert client.get("/calendar", params=params).status_code == 200
