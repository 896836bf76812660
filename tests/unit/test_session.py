from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException

from app.realtime.conversation_feed import FEED_CLOSED, ConversationFeed
from app.realtime.message_listener import MessageListener
from app.session import ApplicationSession, get_app_session


@pytest.fixture
def session():
    listener = MessageListener(conninfo="postgresql://test")
    feed = ConversationFeed(listener, fetch=AsyncMock(return_value=[]))
    notifications = AsyncMock()
    notifications.clear_user_notifications.return_value = 2
    return ApplicationSession(listener=listener, feed=feed, notifications=notifications)


@pytest.mark.asyncio
async def test_sign_out_closes_streams_and_clears_notifications(session):
    queue = session.feed.subscribe("user-123")
    await session.feed.refresher_for("user-123").wait_idle()

    result = await session.sign_out("user-123")

    assert result == {"streams_closed": True, "reminders_removed": 2}
    assert queue.get_nowait() is FEED_CLOSED
    assert session.listener.subscriber_count("user-123") == 0
    session.notifications.clear_user_notifications.assert_awaited_once_with("user-123")


@pytest.mark.asyncio
async def test_sign_out_leaves_other_users_streaming(session):
    session.feed.subscribe("user-123")
    session.feed.subscribe("alice")
    await session.feed.refresher_for("alice").wait_idle()

    await session.sign_out("user-123")

    assert session.feed.active_users() == ["alice"]
    await session.close()
    assert session.feed.active_users() == []


def test_get_app_session_before_startup():
    request = MagicMock()
    request.app.state = MagicMock(spec=[])

    with pytest.raises(HTTPException) as exc_info:
        get_app_session(request)

    assert exc_info.value.status_code == 503
