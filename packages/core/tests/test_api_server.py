"""Tests for the FastAPI server endpoints."""

import inspect
import logging

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from bubbletasks.api_server import HealthCheckFilter, create_app
from bubbletasks.config import Settings
from bubbletasks.store.memory import InMemoryTaskRepository

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class ExplodingRepository(InMemoryTaskRepository):
    """Repository whose writes fail unexpectedly."""

    def insert(self, task):
        raise RuntimeError("disk on fire")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        storage_backend="memory",
        data_dir=str(tmp_path),
        public_base_url="http://tasks.test",
        max_upload_bytes=1024,
    )


@pytest.fixture
def client(settings):
    app = create_app(settings, repository=InMemoryTaskRepository())
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


def create(client, title="Write", minutes=10, **extra):
    resp = client.post("/api/tasks", json={"title": title, "estMinutes": minutes, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()["task"]


def statuses(client) -> list[str]:
    return [t["status"] for t in client.get("/api/tasks").json()["tasks"]]


class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/health")

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["message"] == "BubbleTasks API is running"
        assert "timestamp" in data
        assert "version" in data

    def test_health_filtered_from_access_log(self):
        import logging

        record = logging.LogRecord(
            "uvicorn.access", logging.INFO, "", 0, '127.0.0.1 - "GET /api/health HTTP/1.1" 200',
            None, None,
        )
        assert HealthCheckFilter().filter(record) is False


class TestCreateTask:
    def test_first_task_active_then_upcoming(self, client):
        first = create(client, "Write", 10)
        second = create(client, "Read", 5)

        assert first["status"] == "Active"
        assert first["remainingSeconds"] == 600
        assert second["status"] == "Upcoming"

    def test_response_shape(self, client):
        task = create(client, "  Deep Work  ", 50, imageDataUrl="data:image/png;base64,AA")

        assert task["title"] == "Deep Work"
        assert task["templateKey"] == "deep-work"
        assert task["imageDataUrl"] == "data:image/png;base64,AA"
        assert task["isArchived"] is False
        assert task["archivedAt"] is None
        for field in ("id", "createdAt", "updatedAt"):
            assert task[field]

    def test_default_minutes(self, client):
        resp = client.post("/api/tasks", json={"title": "Walk"})
        assert resp.json()["task"]["estMinutes"] == 25

    def test_numeric_string_minutes_coerced(self, client):
        assert create(client, "Walk", "15")["estMinutes"] == 15

    @pytest.mark.parametrize("body", [{}, {"title": ""}, {"title": "   "}])
    def test_missing_title(self, client, body):
        resp = client.post("/api/tasks", json=body)

        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "title: Task title is required"}

    @pytest.mark.parametrize("minutes", [0, -3, "abc", True, False])
    def test_bad_minutes(self, client, minutes):
        resp = client.post("/api/tasks", json={"title": "x", "estMinutes": minutes})

        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert "estMinutes" in resp.json()["error"]

    def test_malformed_json(self, client):
        resp = client.post(
            "/api/tasks", content=b"{oops", headers={"Content-Type": "application/json"}
        )
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_round_trip(self, client):
        created = create(client, "Round trip", 7, imageDataUrl="http://img/1.png")
        fetched = client.get("/api/tasks").json()["tasks"]

        assert fetched == [created]

    def test_same_title_reuses_icon(self, client):
        create(client, "Read book", 10, imageDataUrl="http://tasks.test/uploads/a.png")

        again = create(client, "read  book", 10)

        assert again["templateKey"] == "read-book"
        assert again["imageDataUrl"] == "http://tasks.test/uploads/a.png"


class TestListTasks:
    def test_scopes(self, client):
        a = create(client, "A")
        b = create(client, "B")
        client.put(f"/api/tasks/{a['id']}", json={"status": "Completed", "remainingSeconds": 0})

        active = client.get("/api/tasks", params={"scope": "active"}).json()["tasks"]
        archived = client.get("/api/tasks", params={"scope": "archived"}).json()["tasks"]
        everything = client.get("/api/tasks", params={"scope": "all"}).json()["tasks"]

        assert [t["id"] for t in active] == [b["id"]]
        assert [t["id"] for t in archived] == [a["id"]]
        assert archived[0]["isArchived"] is True
        assert archived[0]["archivedAt"] is not None
        assert len(everything) == 2

    def test_bad_scope(self, client):
        resp = client.get("/api/tasks", params={"scope": "later"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False


class TestUpdateTask:
    def test_update_fields(self, client):
        task = create(client, "Write", 10)
        resp = client.put(
            f"/api/tasks/{task['id']}",
            json={"title": " Rewrite ", "estMinutes": 20, "remainingSeconds": 900},
        )

        assert resp.status_code == 200
        updated = resp.json()["task"]
        assert updated["title"] == "Rewrite"
        assert updated["estMinutes"] == 20
        assert updated["remainingSeconds"] == 900
        assert updated["templateKey"] == task["templateKey"]

    def test_invalid_status_leaves_record_unchanged(self, client):
        task = create(client, "Write", 10)

        resp = client.put(f"/api/tasks/{task['id']}", json={"status": "Done"})

        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert client.get("/api/tasks").json()["tasks"] == [task]

    def test_unknown_id(self, client):
        resp = client.put("/api/tasks/nope", json={"title": "x"})

        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Task not found"}

    def test_negative_remaining_seconds(self, client):
        task = create(client)
        resp = client.put(f"/api/tasks/{task['id']}", json={"remainingSeconds": -1})
        assert resp.status_code == 400

    @pytest.mark.parametrize("body", [{"remainingSeconds": True}, {"estMinutes": True}])
    def test_boolean_numbers_rejected(self, client, body):
        task = create(client)
        resp = client.put(f"/api/tasks/{task['id']}", json=body)

        assert resp.status_code == 400
        assert client.get("/api/tasks").json()["tasks"] == [task]

    def test_activating_second_task_conflicts(self, client):
        create(client, "One")
        second = create(client, "Two")

        resp = client.put(f"/api/tasks/{second['id']}", json={"status": "Active"})

        assert resp.status_code == 409
        assert resp.json()["success"] is False
        assert statuses(client) == ["Active", "Upcoming"]

    def test_clear_image_with_null(self, client):
        task = create(client, imageDataUrl="data:image/png;base64,AA")
        resp = client.put(f"/api/tasks/{task['id']}", json={"imageDataUrl": None})
        assert resp.json()["task"]["imageDataUrl"] is None

    def test_timer_fields(self, client):
        task = create(client)
        resp = client.put(
            f"/api/tasks/{task['id']}",
            json={"timerStartedAt": "2025-01-01T10:00:00Z", "remainingSeconds": 30},
        )
        updated = resp.json()["task"]
        assert updated["timerStartedAt"].startswith("2025-01-01T10:00:00")
        assert updated["remainingSeconds"] == 30


class TestCompleteAndActivateNextOverHTTP:
    def test_promotes_oldest_upcoming(self, client):
        active = create(client, "Active", 10)
        first = create(client, "First", 3)
        create(client, "Second", 4)

        client.put(f"/api/tasks/{active['id']}", json={"status": "Completed", "remainingSeconds": 0})
        resp = client.put(
            f"/api/tasks/{first['id']}",
            json={
                "status": "Active",
                "remainingSeconds": first["estMinutes"] * 60,
                "timerStartedAt": "2025-01-01T10:00:00Z",
            },
        )

        assert resp.status_code == 200
        assert resp.json()["task"]["remainingSeconds"] == 180
        assert statuses(client) == ["Completed", "Active", "Upcoming"]


class TestDeleteTask:
    def test_delete(self, client):
        task = create(client)

        resp = client.delete(f"/api/tasks/{task['id']}")

        assert resp.status_code == 200
        assert resp.json()["task"]["id"] == task["id"]
        assert client.get("/api/tasks").json()["tasks"] == []

    def test_delete_unknown(self, client):
        resp = client.delete("/api/tasks/nope")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Task not found"


class TestUpload:
    def test_upload_and_serve(self, client, settings):
        resp = client.post("/api/upload", files={"image": ("Icon.PNG", PNG_BYTES, "image/png")})

        assert resp.status_code == 200
        data = resp.json()
        filename = data["filename"]
        assert filename.endswith(".png")
        assert data["imageUrl"] == f"http://tasks.test/uploads/{filename}"
        assert (settings.get_uploads_dir() / filename).read_bytes() == PNG_BYTES

        served = client.get(f"/uploads/{filename}")
        assert served.status_code == 200
        assert served.content == PNG_BYTES

    def test_missing_file(self, client):
        resp = client.post("/api/upload")
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "No file uploaded"}

    def test_non_image_rejected(self, client):
        resp = client.post("/api/upload", files={"image": ("notes.txt", b"hello", "text/plain")})
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_too_large(self, client):
        resp = client.post(
            "/api/upload", files={"image": ("big.png", b"\x00" * 2048, "image/png")}
        )
        assert resp.status_code == 413
        assert resp.json()["success"] is False


class TestErrors:
    def test_unknown_endpoint(self, client):
        resp = client.get("/api/nothing-here")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Endpoint not found"}

    def test_unexpected_error_is_generic(self, settings):
        app = create_app(settings, repository=ExplodingRepository())
        with TestClient(app, raise_server_exceptions=False) as test_client:
            resp = test_client.post("/api/tasks", json={"title": "Boom"})

        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Internal server error"}

    def test_unexpected_error_handled_and_logged_once(self, settings, caplog):
        app = create_app(settings, repository=ExplodingRepository())
        with caplog.at_level(logging.ERROR), TestClient(app) as test_client:
            resp = test_client.post("/api/tasks", json={"title": "Boom"})

        assert resp.status_code == 500
        assert resp.json()["error"] == "Internal server error"
        errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
        assert len(errors) == 1
        assert "disk on fire" in errors[0].getMessage()

    def test_unexpected_error_keeps_cors_headers(self, settings):
        app = create_app(settings, repository=ExplodingRepository())
        with TestClient(app) as test_client:
            resp = test_client.post(
                "/api/tasks",
                json={"title": "Boom"},
                headers={"Origin": "http://localhost:5173"},
            )

        assert resp.status_code == 500
        assert resp.headers["access-control-allow-origin"] == "http://localhost:5173"


class TestRouteHandlers:
    def test_handlers_run_in_threadpool(self, settings):
        app = create_app(settings, repository=InMemoryTaskRepository())
        routes = [r for r in app.routes if isinstance(r, APIRoute)]

        assert {r.path for r in routes} >= {"/api/tasks", "/api/upload", "/api/health"}
        for route in routes:
            assert not inspect.iscoroutinefunction(route.endpoint), route.path


class TestSingleActiveInvariantOverHTTP:
    def test_at_most_one_active(self, client):
        tasks = [create(client, f"T{i}", 1) for i in range(3)]
        requests_to_send = [
            (tasks[1]["id"], {"status": "Active"}),
            (tasks[0]["id"], {"status": "Cancelled"}),
            (tasks[2]["id"], {"status": "Active"}),
            (tasks[1]["id"], {"status": "Active"}),
            (tasks[2]["id"], {"status": "Paused"}),
            (tasks[1]["id"], {"status": "Active"}),
        ]
        for task_id, body in requests_to_send:
            client.put(f"/api/tasks/{task_id}", json=body)
            assert statuses(client).count("Active") <= 1
