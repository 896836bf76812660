import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from app.models.domain.message_domain import Conversation
from app.realtime.conversation_feed import FEED_CLOSED, ConversationFeed
from app.realtime.message_listener import MessageListener


def _conversations(label: str) -> list[Conversation]:
    return [Conversation(other_user_id=label)]


def _notify(listener: MessageListener, receiver_id: str) -> None:
    listener.dispatch(
        json.dumps({"id": "m1", "sender_id": "alice", "receiver_id": receiver_id})
    )


@pytest.fixture
def listener():
    return MessageListener(conninfo="postgresql://test")


@pytest.mark.asyncio
async def test_subscribe_delivers_initial_snapshot(listener):
    fetch = AsyncMock(return_value=_conversations("alice"))
    feed = ConversationFeed(listener, fetch=fetch)

    queue = feed.subscribe("me")
    snapshot = await asyncio.wait_for(queue.get(), timeout=1)

    assert snapshot[0].other_user_id == "alice"
    fetch.assert_awaited_once_with("me")
    assert listener.subscriber_count("me") == 1


@pytest.mark.asyncio
async def test_new_message_triggers_refetch_for_receiver_only(listener):
    fetch = AsyncMock(side_effect=[_conversations("v1"), _conversations("v2")])
    feed = ConversationFeed(listener, fetch=fetch)
    queue = feed.subscribe("me")
    await asyncio.wait_for(queue.get(), timeout=1)

    _notify(listener, "someone-else")
    _notify(listener, "me")
    await feed.refresher_for("me").wait_idle()

    snapshot = await asyncio.wait_for(queue.get(), timeout=1)
    assert snapshot[0].other_user_id == "v2"
    assert fetch.await_count == 2


@pytest.mark.asyncio
async def test_burst_of_messages_coalesces_fetches(listener):
    fetch = AsyncMock(return_value=_conversations("alice"))
    feed = ConversationFeed(listener, fetch=fetch)
    queue = feed.subscribe("me")
    await feed.refresher_for("me").wait_idle()

    for _ in range(20):
        _notify(listener, "me")
    await feed.refresher_for("me").wait_idle()

    assert fetch.await_count <= 3
    assert queue.qsize() == 1


@pytest.mark.asyncio
async def test_last_unsubscribe_tears_down_listener_handler(listener):
    feed = ConversationFeed(listener, fetch=AsyncMock(return_value=[]))
    first = feed.subscribe("me")
    second = feed.subscribe("me")
    await feed.refresher_for("me").wait_idle()

    await feed.unsubscribe("me", first)
    assert feed.active_users() == ["me"]

    await feed.unsubscribe("me", second)
    assert feed.active_users() == []
    assert listener.subscriber_count("me") == 0


@pytest.mark.asyncio
async def test_close_user_ends_streams(listener):
    feed = ConversationFeed(listener, fetch=AsyncMock(return_value=[]))
    queue = feed.subscribe("me")
    await feed.refresher_for("me").wait_idle()

    await feed.close_user("me")

    assert queue.get_nowait() is FEED_CLOSED
    assert feed.active_users() == []
    assert listener.subscriber_count("me") == 0


@pytest.mark.asyncio
async def test_failed_refresh_keeps_stream_open(listener):
    fetch = AsyncMock(side_effect=[RuntimeError("db down"), _conversations("alice")])
    feed = ConversationFeed(listener, fetch=fetch)
    queue = feed.subscribe("me")
    await feed.refresher_for("me").wait_idle()
    assert queue.empty()

    _notify(listener, "me")
    await feed.refresher_for("me").wait_idle()

    assert (await asyncio.wait_for(queue.get(), timeout=1))[0].other_user_id == "alice"
