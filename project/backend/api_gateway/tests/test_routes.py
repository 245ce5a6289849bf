"""
Tests for the HTTP API.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4
from fastapi import status
from fastapi.testclient import TestClient

from api_gateway.dependencies import WorkflowRegistry, get_registry, get_repository
from api_gateway.main import create_app
from api_gateway.services import queue_service

SOURCE_URL = "https://www.tiktok.com/@brand/video/7212345678901234567"


@pytest.fixture
def app(coordinator, repository):
    app = create_app()
    registry = WorkflowRegistry(factory=lambda brand_id: coordinator)
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_repository] = lambda: repository
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def workflow_id(client):
    response = client.post("/api/workflows", json={})
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()["workflow_id"]


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.parametrize("database,redis,expected", [
    (True, True, 200),
    (True, False, 503),
    (False, True, 503),
])
def test_readiness_checks_dependencies(app, client, database, redis, expected):
    repository = MagicMock()
    repository.db.health_check = AsyncMock(return_value=database)
    app.dependency_overrides[get_repository] = lambda: repository

    with patch.object(queue_service.redis_client, "health_check", new_callable=AsyncMock, return_value=redis):
        response = client.get("/health/ready")

    assert response.status_code == expected
    assert response.json()["checks"] == {"database": database, "redis": redis}


def test_create_workflow_starts_idle(client):
    response = client.post("/api/workflows", json={"brand_id": str(uuid4())})

    body = response.json()
    assert body["state"] == "IDLE"
    assert not any(body["tabs"].values())
    assert body["variant_ids"] == []


def test_unknown_workflow_is_404(client):
    assert client.get(f"/api/workflows/{uuid4()}").status_code == 404
    assert client.delete(f"/api/workflows/{uuid4()}").status_code == 404


def test_delete_workflow(client, workflow_id):
    assert client.delete(f"/api/workflows/{workflow_id}").status_code == status.HTTP_204_NO_CONTENT
    assert client.get(f"/api/workflows/{workflow_id}").status_code == 404


def test_unsupported_source_url_is_422(client, workflow_id):
    response = client.post(f"/api/workflows/{workflow_id}/analysis", json={"source_url": "https://example.com/page"})

    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"


def test_out_of_order_step_is_409(client, workflow_id):
    response = client.put(f"/api/workflows/{workflow_id}/voice", json={})

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "INVALID_TRANSITION"
    assert body["current_state"] == "IDLE"
    assert body["target_state"] == "VOICE_READY"


def test_malformed_assignments_are_422(client, workflow_id):
    response = client.put(
        f"/api/workflows/{workflow_id}/assignments", json={"bindings": {"not-a-uuid": "also-not"}}
    )

    assert response.status_code == 422


def test_progress_before_launch_is_404(client, workflow_id):
    assert client.get(f"/api/workflows/{workflow_id}/progress").status_code == 404
    assert client.get(f"/api/workflows/{workflow_id}/progress/stream").status_code == 404


def test_list_voices(client):
    voices = client.get("/api/voices").json()["voices"]

    assert {"name": "Sarah", "voice_id": "EXAVITQu4vr4xnSDxMaL"} in voices


def test_catalog_folders(client):
    body = client.get("/api/catalog/folders").json()

    assert body["folder_count"] == 3
    assert body["total_assets"] == 5
    assert {f["name"] for f in body["folders"]} == {"Hooks", "Producto", "CTA"}


def test_catalog_assets(client):
    assets = client.get("/api/catalog/assets").json()["assets"]

    assert len(assets) == 5


def test_move_asset_returns_catalog(client, workflow_id, repository):
    asset = repository.assets[0]
    target = repository.folders[2]

    response = client.post(
        f"/api/workflows/{workflow_id}/catalog/assets/{asset.id}/move", json={"folder_id": str(target.id)}
    )

    assert response.status_code == 200
    assert repository.assets[0].folder_id == target.id


def test_full_workflow_over_http(client, workflow_id, repository, script_sections):
    repository.ready_script = script_sections
    base = f"/api/workflows/{workflow_id}"

    response = client.post(f"{base}/analysis", json={"source_url": SOURCE_URL})
    assert response.status_code == status.HTTP_202_ACCEPTED

    # Background polling settles the analysis
    view = client.get(base).json()
    assert view["state"] == "SCRIPT_READY"
    assert view["tabs"]["clips"] is True
    assert view["tabs"]["voice"] is False

    analysis = client.get(f"{base}/analysis").json()["analysis"]
    section_id = analysis["sections"][0]["id"]
    edited = client.patch(f"{base}/sections/{section_id}", json={"text": "Still fighting cables?"})
    assert edited.json()["text"] == "Still fighting cables?"

    assert client.get(f"{base}/feasibility").json() == {"ready": True, "warnings": []}

    suggestion = client.post(f"{base}/suggestions").json()
    assert all(suggestion["bindings"].values())
    assert client.put(f"{base}/assignments", json=suggestion).json()["state"] == "CLIPS_ASSIGNED"

    assert client.put(f"{base}/voice", json={"voice_id": "FGY2WhTYpPnrIDTdsKH5"}).json()["state"] == "VOICE_READY"

    assert client.put(f"{base}/variants/config", json={"count": 11}).status_code == 409
    assert client.put(f"{base}/variants/config", json={"count": 2}).json()["state"] == "VARIANTS_CONFIGURED"

    project = client.post(f"{base}/project", json={"name": "Launch"})
    assert project.status_code == status.HTTP_201_CREATED
    project_id = project.json()["project_id"]

    launched = client.post(f"{base}/variants")
    assert launched.status_code == status.HTTP_202_ACCEPTED
    assert launched.json()["project_id"] == project_id
    assert len(launched.json()["variant_ids"]) == 2

    # Background tracking settles the batch
    progress = client.get(f"{base}/progress").json()
    assert progress["state"] == "DONE"
    assert progress["total"] == 2

    stream = client.get(f"{base}/progress/stream")
    assert stream.headers["content-type"].startswith("text/event-stream")
    assert "event: snapshot" in stream.text
    assert "event: complete" in stream.text

    assert client.get(base).json()["tabs"]["results"] is True


def test_cancel_and_reset(client, workflow_id):
    base = f"/api/workflows/{workflow_id}"

    assert client.post(f"{base}/cancel").json()["state"] == "IDLE"
    assert client.post(f"{base}/reset").json()["state"] == "IDLE"
