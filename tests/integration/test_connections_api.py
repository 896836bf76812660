from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.main import app
from tests.factories import BOB_ID, CONNECTION_ID, make_connection, make_profile

REPO = "app.services.connection_service.ConnectionRepository"
PROFILES = "app.services.connection_service.ProfileRepository"


@pytest.fixture
def client(apply_auth_override, monkeypatch):
    apply_auth_override(app)
    monkeypatch.setattr(
        "app.services.connection_service.notification_service.send_local_notification",
        AsyncMock(return_value=False),
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_requires_authentication():
    response = TestClient(app).get("/connections")

    assert response.status_code in (401, 403)


def test_get_connections_overview(client, monkeypatch):
    monkeypatch.setattr(f"{REPO}.list_accepted", AsyncMock(return_value=[]))
    monkeypatch.setattr(
        f"{REPO}.list_pending_received", AsyncMock(return_value=[make_connection()])
    )
    monkeypatch.setattr(f"{REPO}.list_pending_sent", AsyncMock(return_value=[]))

    response = client.get("/connections")

    assert response.status_code == 200
    data = response.json()
    assert data["counts"] == {"connections": 0, "pending": 1, "sent": 0}
    assert data["pending_requests"][0]["requester_id"] == "alice"


def test_send_request(client, monkeypatch):
    monkeypatch.setattr(f"{PROFILES}.get_by_id", AsyncMock(return_value=make_profile("bob")))
    monkeypatch.setattr(f"{REPO}.find_open_between", AsyncMock(return_value=None))
    monkeypatch.setattr(
        f"{REPO}.create",
        AsyncMock(return_value=make_connection(requester_id="user-123", requested_id="bob")),
    )

    response = client.post("/connections", json={"requested_id": BOB_ID})

    assert response.status_code == 201
    assert response.json()["connection"]["status"] == "pending"


def test_send_duplicate_request_conflicts(client, monkeypatch):
    monkeypatch.setattr(f"{PROFILES}.get_by_id", AsyncMock(return_value=make_profile("bob")))
    monkeypatch.setattr(
        f"{REPO}.find_open_between", AsyncMock(return_value=make_connection(status="pending"))
    )

    response = client.post("/connections", json={"requested_id": BOB_ID})

    assert response.status_code == 409


def test_respond_accept(client, monkeypatch):
    monkeypatch.setattr(f"{REPO}.get_by_id", AsyncMock(return_value=make_connection()))
    monkeypatch.setattr(
        f"{REPO}.respond", AsyncMock(return_value=make_connection(status="accepted"))
    )

    response = client.post(f"/connections/{CONNECTION_ID}/respond", json={"status": "accepted"})

    assert response.status_code == 200
    assert response.json()["connection"]["status"] == "accepted"


def test_respond_rejects_invalid_status(client):
    response = client.post(f"/connections/{CONNECTION_ID}/respond", json={"status": "pending"})

    assert response.status_code == 422


def test_respond_to_unknown_request(client, monkeypatch):
    monkeypatch.setattr(f"{REPO}.get_by_id", AsyncMock(return_value=None))

    response = client.post(f"/connections/{CONNECTION_ID}/respond", json={"status": "rejected"})

    assert response.status_code == 404


def test_respond_with_malformed_id_is_rejected_before_the_store(client, monkeypatch):
    get_mock = AsyncMock()
    monkeypatch.setattr(f"{REPO}.get_by_id", get_mock)

    response = client.post("/connections/conn-1/respond", json={"status": "accepted"})

    assert response.status_code == 422
    get_mock.assert_not_awaited()


def test_send_request_with_malformed_id(client):
    response = client.post("/connections", json={"requested_id": "bob"})

    assert response.status_code == 422
