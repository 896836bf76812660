import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.db.helpers import DatabaseError
from app.main import app
from app.realtime.conversation_feed import FEED_CLOSED, ConversationFeed
from app.realtime.message_listener import MessageListener
from app.routes.messages import stream_conversations
from app.services.conversation_service import aggregate_conversations
from app.session import get_app_session
from tests.factories import ALICE_ID, make_message, make_profile

SERVICE = "app.services.conversation_service"


@pytest.fixture
def app_session():
    session = MagicMock()
    session.feed.refresher_for.return_value = None
    session.feed.unsubscribe = AsyncMock()
    return session


@pytest.fixture
def client(apply_auth_override, app_session):
    apply_auth_override(app)
    app.dependency_overrides[get_app_session] = lambda: app_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_list_conversations(client, monkeypatch):
    alice = make_profile("alice", "Alice")
    messages = [
        make_message("m2", "user-123", "bob", minutes=5, content="See you at 10?"),
        make_message("m1", "alice", "user-123", minutes=1, sender_profile=alice),
    ]
    monkeypatch.setattr(
        f"{SERVICE}.MessageRepository.list_for_user", AsyncMock(return_value=messages)
    )
    monkeypatch.setattr(
        "app.repositories.profile_repository.ProfileRepository.get_by_ids",
        AsyncMock(return_value=[]),
    )

    response = client.get("/messages/conversations")

    assert response.status_code == 200
    data = response.json()
    assert data["unread_total"] == 1
    first, second = data["conversations"]
    assert first["other_user_id"] == "bob"
    assert first["other_user_profile"] is None
    assert first["preview"] == "You: See you at 10?"
    assert second["other_user_profile"]["first_name"] == "Alice"
    assert second["unread_count"] == 1


def test_list_conversations_store_failure(client, monkeypatch):
    monkeypatch.setattr(
        f"{SERVICE}.MessageRepository.list_for_user",
        AsyncMock(side_effect=DatabaseError("boom", operation="fetch_all")),
    )

    response = client.get("/messages/conversations")

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to load conversations"


def test_send_message_refreshes_own_feed(client, app_session, monkeypatch):
    refresher = MagicMock()
    app_session.feed.refresher_for.return_value = refresher
    monkeypatch.setattr(
        "app.services.message_service.ProfileRepository.get_by_id",
        AsyncMock(return_value=make_profile("alice")),
    )
    monkeypatch.setattr(
        "app.services.message_service.MessageRepository.create",
        AsyncMock(return_value=make_message("m9", "user-123", "alice", content="hi")),
    )

    response = client.post("/messages", json={"receiver_id": ALICE_ID, "content": "hi"})

    assert response.status_code == 201
    assert response.json()["id"] == "m9"
    refresher.trigger.assert_called_once()


def test_send_message_with_malformed_receiver(client):
    response = client.post("/messages", json={"receiver_id": "user-123", "content": "hi"})

    assert response.status_code == 422


def test_send_message_to_unknown_receiver(client, monkeypatch):
    monkeypatch.setattr(
        "app.services.message_service.ProfileRepository.get_by_id", AsyncMock(return_value=None)
    )
    create_mock = AsyncMock()
    monkeypatch.setattr("app.services.message_service.MessageRepository.create", create_mock)

    response = client.post("/messages", json={"receiver_id": ALICE_ID, "content": "hi"})

    assert response.status_code == 404
    create_mock.assert_not_awaited()


def test_thread_with_malformed_id(client):
    response = client.get("/messages/alice")

    assert response.status_code == 422


def test_mark_read(client, monkeypatch):
    monkeypatch.setattr(
        "app.services.message_service.MessageRepository.mark_read", AsyncMock(return_value=2)
    )

    response = client.post(f"/messages/{ALICE_ID}/read")

    assert response.status_code == 200
    assert response.json() == {"success": True, "updated": 2}


def test_get_thread(client, monkeypatch):
    thread = [
        make_message("m1", "alice", "user-123", minutes=0),
        make_message("m2", "user-123", "alice", minutes=1),
    ]
    monkeypatch.setattr(
        "app.services.message_service.MessageRepository.list_thread",
        AsyncMock(return_value=thread),
    )

    response = client.get(f"/messages/{ALICE_ID}")

    assert response.status_code == 200
    assert [m["id"] for m in response.json()["messages"]] == ["m1", "m2"]


def test_conversation_stream_emits_snapshot_then_closes(client, app_session):
    queue: asyncio.Queue = asyncio.Queue()
    snapshot = aggregate_conversations([make_message("m1", "alice", "user-123")], "user-123")
    queue.put_nowait(snapshot)
    queue.put_nowait(FEED_CLOSED)
    app_session.feed.subscribe.return_value = queue

    with client.stream("GET", "/messages/conversations/stream") as response:
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        body = "".join(response.iter_text())

    assert "event: conversations" in body
    assert '"other_user_id": "alice"' in body
    assert "event: closed" in body
    app_session.feed.subscribe.assert_called_once_with("user-123")
    app_session.feed.unsubscribe.assert_awaited_once_with("user-123", queue)


@pytest.mark.asyncio
async def test_stream_dropped_before_first_chunk_leaves_no_feed_behind():
    listener = MessageListener(conninfo="postgresql://unused")
    feed = ConversationFeed(listener, fetch=AsyncMock(return_value=[]))
    session = MagicMock()
    session.feed = feed
    request = MagicMock()
    request.is_disconnected = AsyncMock(return_value=True)

    response = await stream_conversations(request, user_id="user-123", session=session)

    assert feed.active_users() == []

    async def receive():
        return {"type": "http.disconnect"}

    scope = {"type": "http", "method": "GET", "path": "/messages/conversations/stream"}
    await response(scope, receive, AsyncMock())

    assert feed.active_users() == []
    assert listener.subscriber_count("user-123") == 0
