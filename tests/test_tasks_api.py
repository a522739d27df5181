import asyncio
import os
import time

import pytest
from fastapi.testclient import TestClient

# Ensure we default to memory backend for tests to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from minitodo.engine import TaskListEngine  # noqa: E402
from minitodo.main import create_app  # noqa: E402
from minitodo.repositories import InMemoryRepository  # noqa: E402
from minitodo.routers.tasks import task_events  # noqa: E402
from minitodo.schemas import TaskListOut  # noqa: E402
from minitodo.settings import get_settings  # noqa: E402
from minitodo.store import TaskStore  # noqa: E402

from .fakes import RecordingPresenter  # noqa: E402

FUTURE = "2099-12-25 09:30"


@pytest.fixture()
def presenter():
    return RecordingPresenter()


@pytest.fixture()
def client(presenter):
    app = create_app(settings=get_settings(), repository=InMemoryRepository(), presenter=presenter)
    with TestClient(app) as c:
        yield c


def wait_for_list(client, predicate, timeout=2.0):
    """Poll the list endpoint until `predicate(body)` holds; writes land asynchronously."""
    deadline = time.monotonic() + timeout
    while True:
        body = client.get("/api/v1/tasks/").json()
        if predicate(body):
            return body
        if time.monotonic() > deadline:
            raise AssertionError(f"list never matched, last body: {body}")
        time.sleep(0.01)


def add(client, title):
    res = client.post("/api/v1/tasks/", json={"title": title})
    assert res.status_code == 202
    return res


def add_and_wait(client, title):
    add(client, title)
    body = wait_for_list(client, lambda b: any(t["title"] == title for t in b["items"]))
    return next(t for t in body["items"] if t["title"] == title)


def assert_task_shape(task: dict):
    for key in ["id", "title", "is_done", "created_at", "remind_time", "reminder_reached"]:
        assert key in task
    assert isinstance(task["id"], int)
    assert isinstance(task["title"], str)
    assert isinstance(task["is_done"], bool)
    assert isinstance(task["created_at"], int)
    assert isinstance(task["remind_time"], str)


class TestHealth:
    def test_health_check(self, client):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] in ("memory", "sqlite")


class TestTasksFlow:
    def test_empty_list(self, client):
        res = client.get("/api/v1/tasks/")
        assert res.status_code == 200
        body = res.json()
        assert body["items"] == []
        assert body["total_count"] == 0
        assert body["error_message"] is None
        assert body["should_scroll_to_top"] is False

    def test_add_task(self, client):
        add(client, "Buy milk")
        body = wait_for_list(client, lambda b: b["total_count"] == 1)
        (task,) = body["items"]
        assert_task_shape(task)
        assert task["title"] == "Buy milk"
        assert task["is_done"] is False
        assert task["remind_time"] == ""
        assert body["uncompleted_count"] == 1
        assert body["should_scroll_to_top"] is True

        res = client.post("/api/v1/tasks/scroll/clear")
        assert res.status_code == 204
        assert client.get("/api/v1/tasks/").json()["should_scroll_to_top"] is False

    def test_get_task_and_not_found(self, client):
        task = add_and_wait(client, "Read book")
        res = client.get(f"/api/v1/tasks/{task['id']}")
        assert res.status_code == 200
        assert res.json()["title"] == "Read book"

        res_404 = client.get("/api/v1/tasks/999999")
        assert res_404.status_code == 404
        assert res_404.json()["detail"] == "Task not found"

    def test_toggle_moves_task_to_bottom(self, client):
        first = add_and_wait(client, "first")
        add_and_wait(client, "second")

        res = client.post(f"/api/v1/tasks/{first['id']}/toggle")
        assert res.status_code == 202
        body = wait_for_list(client, lambda b: b["completed_count"] == 1)
        assert [t["title"] for t in body["items"]] == ["second", "first"]
        assert body["items"][-1]["is_done"] is True

        stats = client.get("/api/v1/tasks/stats").json()
        assert stats == {"total_count": 2, "completed_count": 1, "uncompleted_count": 1}

    def test_replace_keeps_id_and_created_at(self, client):
        task = add_and_wait(client, "Initial")
        payload = {"title": "  Replaced  ", "is_done": True, "remind_time": ""}
        res = client.put(f"/api/v1/tasks/{task['id']}", json=payload)
        assert res.status_code == 202

        body = wait_for_list(client, lambda b: b["items"] and b["items"][0]["title"] == "Replaced")
        (updated,) = body["items"]
        assert updated["id"] == task["id"]
        assert updated["created_at"] == task["created_at"]
        assert updated["is_done"] is True

        res_nf = client.put("/api/v1/tasks/424242", json=payload)
        assert res_nf.status_code == 404

    def test_delete_task(self, client):
        task = add_and_wait(client, "ToDelete")
        add_and_wait(client, "Stays")

        res = client.delete(f"/api/v1/tasks/{task['id']}")
        assert res.status_code == 202
        body = wait_for_list(client, lambda b: b["total_count"] == 1)
        assert [t["title"] for t in body["items"]] == ["Stays"]

        assert client.get(f"/api/v1/tasks/{task['id']}").status_code == 404
        assert client.delete(f"/api/v1/tasks/{task['id']}").status_code == 404

    def test_grouped_view(self, client):
        done = add_and_wait(client, "done")
        add_and_wait(client, "open")
        client.post(f"/api/v1/tasks/{done['id']}/toggle")
        wait_for_list(client, lambda b: b["completed_count"] == 1)

        items = client.get("/api/v1/tasks/grouped").json()["items"]
        assert [i["kind"] for i in items] == ["header", "row", "header", "row"]
        assert items[0] == {"kind": "header", "group_key": "uncompleted", "expanded": True, "count": 1}
        assert items[3]["task"]["title"] == "done"

        collapsed = client.get("/api/v1/tasks/grouped?collapsed=completed").json()["items"]
        assert [i["kind"] for i in collapsed] == ["header", "row", "header"]
        assert collapsed[2]["expanded"] is False


class TestReminders:
    def test_reminder_orders_task_first_and_schedules(self, client, presenter):
        a = add_and_wait(client, "A")
        add_and_wait(client, "B")

        res = client.put(f"/api/v1/tasks/{a['id']}/reminder", json={"remind_time": FUTURE})
        assert res.status_code == 202
        body = wait_for_list(client, lambda b: b["items"][0]["title"] == "A")
        assert body["items"][0]["remind_time"] == FUTURE
        assert body["items"][0]["reminder_reached"] is False

        scheduler = client.app.state.reminder_scheduler
        assert scheduler.pending_ids() == [a["id"]]
        assert presenter.shown == []

    def test_completing_task_cancels_reminder(self, client):
        task = add_and_wait(client, "Call mom")
        client.put(f"/api/v1/tasks/{task['id']}/reminder", json={"remind_time": FUTURE})
        wait_for_list(client, lambda b: b["items"][0]["remind_time"] == FUTURE)
        scheduler = client.app.state.reminder_scheduler
        assert scheduler.pending_ids() == [task["id"]]

        client.post(f"/api/v1/tasks/{task['id']}/toggle")
        wait_for_list(client, lambda b: b["completed_count"] == 1)
        assert scheduler.pending_ids() == []

    def test_deleting_task_cancels_reminder(self, client):
        task = add_and_wait(client, "Dentist")
        client.put(f"/api/v1/tasks/{task['id']}/reminder", json={"remind_time": FUTURE})
        wait_for_list(client, lambda b: b["items"][0]["remind_time"] == FUTURE)

        client.delete(f"/api/v1/tasks/{task['id']}")
        wait_for_list(client, lambda b: b["total_count"] == 0)
        assert client.app.state.reminder_scheduler.pending_ids() == []

    def test_empty_reminder_clears(self, client):
        task = add_and_wait(client, "Plants")
        client.put(f"/api/v1/tasks/{task['id']}/reminder", json={"remind_time": FUTURE})
        wait_for_list(client, lambda b: b["items"][0]["remind_time"] == FUTURE)

        res = client.put(f"/api/v1/tasks/{task['id']}/reminder", json={"remind_time": ""})
        assert res.status_code == 202
        wait_for_list(client, lambda b: b["items"][0]["remind_time"] == "")
        assert client.app.state.reminder_scheduler.pending_ids() == []


class TestValidationErrors:
    def test_blank_title_rejected(self, client):
        res = client.post("/api/v1/tasks/", json={"title": "   "})
        assert res.status_code == 422
        assert res.json()["detail"] == "Task title cannot be empty"

        body = client.get("/api/v1/tasks/").json()
        assert body["items"] == []
        assert body["error_message"] == "Task title cannot be empty"

        assert client.post("/api/v1/tasks/error/clear").status_code == 204
        assert client.get("/api/v1/tasks/").json()["error_message"] is None

    def test_title_length_boundary(self, client):
        res = client.post("/api/v1/tasks/", json={"title": "x" * 201})
        assert res.status_code == 422
        assert res.json()["detail"] == "Task title is too long (max 200 characters)"

        add(client, "x" * 200)
        wait_for_list(client, lambda b: b["total_count"] == 1)

    def test_missing_title_uses_error_envelope(self, client):
        res = client.post("/api/v1/tasks/", json={})
        assert res.status_code == 422
        body = res.json()
        assert body.get("error") == "ValidationError"
        assert body.get("message") == "Request validation failed"
        assert isinstance(body.get("detail"), list)

    def test_replace_with_blank_title_is_validation_error(self, client):
        task = add_and_wait(client, "Keep")
        res = client.put(f"/api/v1/tasks/{task['id']}", json={"title": " ", "is_done": False})
        assert res.status_code == 422
        assert res.json().get("error") == "ValidationError"

    @pytest.mark.parametrize("remind_time", ["tomorrow", "2099-12-25", "2000-01-01 10:00"])
    def test_bad_reminder_rejected(self, client, remind_time):
        task = add_and_wait(client, "Remind me")
        res = client.put(f"/api/v1/tasks/{task['id']}/reminder", json={"remind_time": remind_time})
        assert res.status_code == 422
        assert res.json().get("error") == "ValidationError"


class TestEventStream:
    @pytest.mark.asyncio
    async def test_events_are_framed_task_list_json(self):
        engine = TaskListEngine(TaskStore(InMemoryRepository()))
        engine.add_task("Streamed")
        await engine.join()

        response = await task_events(engine)
        assert response.media_type == "text/event-stream"

        events = response.body_iterator
        chunk = await events.__anext__()
        while '"Streamed"' not in chunk:
            chunk = await asyncio.wait_for(events.__anext__(), 1.0)
        assert chunk.startswith("data: ")
        assert chunk.endswith("\n\n")

        body = TaskListOut.model_validate_json(chunk[len("data: "):])
        assert [t.title for t in body.items] == ["Streamed"]
        assert body.total_count == 1
        assert body.should_scroll_to_top is True
        await events.aclose()
        await engine.aclose()

    def test_route_is_registered(self, client):
        paths = {route.path for route in client.app.routes}
        assert "/api/v1/tasks/events" in paths
