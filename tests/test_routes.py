from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.wardrobe_uploads.application.services import UploadService
from src.wardrobe_uploads.domain.models.task_status import TaskStatus

from tests.conftest import make_item


@pytest.fixture
def service(make_service) -> UploadService:
    return make_service()


@pytest.fixture
def api_client(service: UploadService, monkeypatch: pytest.MonkeyPatch):
    """FastAPI test client with routes wired to the stubbed upload service."""
    import inject

    def fake_instance(interface: object) -> object:
        if interface is UploadService:
            return service
        raise RuntimeError(f"Unexpected dependency request: {interface}")

    monkeypatch.setattr(inject, "instance", fake_instance)

    from src.wardrobe_uploads.presentation.routes import router

    app = FastAPI()
    app.include_router(router)
    with TestClient(app) as client:
        yield client


def _add_failed(service: UploadService, stage: TaskStatus = TaskStatus.ANALYZING) -> str:
    return service.registry.add_task(
        "b.jpg",
        status=TaskStatus.ERROR,
        progress=100,
        error_message="Could not analyze b.jpg",
        failed_stage=stage,
        asset_url="https://cdn.test/b.jpg",
    )


def _add_succeeded(service: UploadService) -> str:
    item = make_item("9")
    return service.registry.add_task(
        "a.jpg",
        status=TaskStatus.SUCCESS,
        progress=100,
        created_item_id=item.id,
        created_item_data=item,
    )


def test_submit_creates_one_task_per_file(api_client, service) -> None:
    response = api_client.post(
        "/uploads",
        files=[
            ("files", ("a.jpg", b"\xff\xd8a", "image/jpeg")),
            ("files", ("b.png", b"\x89PNGb", "image/png")),
        ],
    )

    assert response.status_code == 202
    task_ids = response.json()["task_ids"]
    assert len(task_ids) == 2

    listed = api_client.get("/uploads").json()
    assert [task["id"] for task in listed] == task_ids
    assert [task["file_name"] for task in listed] == ["a.jpg", "b.png"]
    assert listed[-1]["is_active"] is True


def test_get_unknown_task_returns_404(api_client) -> None:
    response = api_client.get("/uploads/missing")

    assert response.status_code == 404


def test_failed_task_view_exposes_error(api_client, service) -> None:
    task_id = _add_failed(service)

    body = api_client.get(f"/uploads/{task_id}").json()

    assert body["status"] == "error"
    assert body["error_message"] == "Could not analyze b.jpg"
    assert body["created_item_id"] is None
    assert body["retry_count"] == 0


def test_retry_schedules_run(api_client, service) -> None:
    task_id = _add_failed(service)

    response = api_client.post(f"/uploads/{task_id}/retry")

    assert response.status_code == 200
    assert response.json() == {"task_id": task_id, "scheduled": True}
    assert service.get_task(task_id).retry_count == 1


def test_retry_of_successful_task_is_not_scheduled(api_client, service) -> None:
    task_id = _add_succeeded(service)

    response = api_client.post(f"/uploads/{task_id}/retry")

    assert response.json()["scheduled"] is False
    assert api_client.post("/uploads/missing/retry").status_code == 404


def test_dismiss_removes_task(api_client, service) -> None:
    task_id = _add_failed(service)

    assert api_client.delete(f"/uploads/{task_id}").status_code == 204
    assert api_client.get(f"/uploads/{task_id}").status_code == 404
    assert api_client.delete(f"/uploads/{task_id}").status_code == 404


def test_clear_completed(api_client, service) -> None:
    failed = _add_failed(service)
    succeeded = _add_succeeded(service)
    in_flight = service.registry.add_task("c.jpg")

    response = api_client.post("/uploads/clear-completed")

    assert sorted(response.json()["removed"]) == sorted([failed, succeeded])
    assert [task.id for task in service.list_tasks()] == [in_flight]


def test_select_active_task(api_client, service) -> None:
    first = _add_failed(service)
    _add_succeeded(service)

    assert api_client.put("/uploads/active", json={"task_id": first}).status_code == 204
    assert api_client.get("/uploads/active").json()["id"] == first

    assert api_client.put("/uploads/active", json={"task_id": None}).status_code == 204
    assert api_client.get("/uploads/active").json() is None

    assert api_client.put("/uploads/active", json={"task_id": "missing"}).status_code == 404


def test_open_editor_returns_cached_item(api_client, service, editor) -> None:
    task_id = _add_succeeded(service)

    response = api_client.post(f"/uploads/{task_id}/editor")

    assert response.status_code == 200
    assert response.json()["id"] == "9"
    assert editor.opened[0][0] == "9"


def test_open_editor_conflicts_until_success(api_client, service) -> None:
    task_id = _add_failed(service)

    assert api_client.post(f"/uploads/{task_id}/editor").status_code == 409
    assert api_client.post("/uploads/missing/editor").status_code == 404
