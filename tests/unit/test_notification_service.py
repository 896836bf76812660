import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.services.notification_service import (
    REMINDER_QUEUE_KEY,
    NotificationService,
    PushTarget,
    reminder_trigger_time,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def service(fake_redis):
    return NotificationService(redis_client=fake_redis)


def test_reminder_fires_fifteen_minutes_before():
    meeting_time = datetime(2024, 6, 1, 15, 0, tzinfo=UTC)

    assert reminder_trigger_time(meeting_time) == datetime(2024, 6, 1, 14, 45, tzinfo=UTC)


@pytest.mark.asyncio
async def test_schedule_reminder_queues_at_trigger_time(service, fake_redis):
    await service.register_push_token("user-1", "ExponentPushToken[abc]", "ios")

    queued = await service.schedule_meeting_reminder(
        "user-1", "Coffee soon", "Chat starts in 15 minutes", NOW + timedelta(hours=2), now=NOW
    )

    assert queued is True
    [(member, score)] = fake_redis.sorted_sets[REMINDER_QUEUE_KEY].items()
    assert score == (NOW + timedelta(hours=2) - timedelta(minutes=15)).timestamp()
    assert json.loads(member)["user_id"] == "user-1"


@pytest.mark.asyncio
async def test_past_reminder_is_skipped(service, fake_redis):
    await service.register_push_token("user-1", "ExponentPushToken[abc]", "android")

    queued = await service.schedule_meeting_reminder(
        "user-1", "Coffee soon", "body", NOW + timedelta(minutes=10), now=NOW
    )

    assert queued is False
    assert not fake_redis.sorted_sets.get(REMINDER_QUEUE_KEY)


@pytest.mark.asyncio
async def test_web_platform_and_missing_token_are_no_ops(service, fake_redis):
    await service.register_push_token("web-user", "token", "web")
    deliver = AsyncMock(return_value=True)
    service.deliver = deliver

    assert await service.send_local_notification("web-user", "t", "b") is False
    assert await service.send_local_notification("nobody", "t", "b") is False
    assert (
        await service.schedule_meeting_reminder(
            "web-user", "t", "b", NOW + timedelta(days=1), now=NOW
        )
        is False
    )
    deliver.assert_not_awaited()


@pytest.mark.asyncio
async def test_send_local_notification_never_raises(service):
    service.redis = MagicMock()
    service.redis.get = AsyncMock(side_effect=RuntimeError("redis down"))

    assert await service.send_local_notification("user-1", "t", "b") is False


@pytest.mark.asyncio
async def test_dispatch_delivers_only_due_reminders_once(service, fake_redis):
    await service.register_push_token("user-1", "ExponentPushToken[abc]", "ios")
    await service.schedule_meeting_reminder(
        "user-1", "Soon", "due", NOW + timedelta(minutes=20), now=NOW
    )
    await service.schedule_meeting_reminder(
        "user-1", "Later", "not due", NOW + timedelta(hours=5), now=NOW
    )
    deliver = AsyncMock(return_value=True)
    service.deliver = deliver

    delivered = await service.dispatch_due_reminders(now=NOW + timedelta(minutes=10))
    again = await service.dispatch_due_reminders(now=NOW + timedelta(minutes=10))

    assert (delivered, again) == (1, 0)
    target, title, body = deliver.await_args.args
    assert target.token == "ExponentPushToken[abc]"
    assert (title, body) == ("Soon", "due")
    assert len(fake_redis.sorted_sets[REMINDER_QUEUE_KEY]) == 1


@pytest.mark.asyncio
async def test_clear_user_notifications(service, fake_redis):
    for user_id in ("user-1", "user-2"):
        await service.register_push_token(user_id, f"token-{user_id}", "ios")
        await service.schedule_meeting_reminder(
            user_id, "Soon", "body", NOW + timedelta(hours=1), now=NOW
        )

    removed = await service.clear_user_notifications("user-1")

    assert removed == 1
    assert await service.get_push_target("user-1") is None
    assert await service.get_push_target("user-2") is not None
    remaining = [json.loads(m)["user_id"] for m in fake_redis.sorted_sets[REMINDER_QUEUE_KEY]]
    assert remaining == ["user-2"]


@pytest.mark.asyncio
async def test_deliver_posts_to_expo(service, httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url="https://exp.host/--/api/v2/push/send",
        json={"data": {"status": "ok"}},
    )

    ok = await service.deliver(PushTarget(token="ExponentPushToken[abc]", platform="ios"), "T", "B")

    assert ok is True
    request = httpx_mock.get_request()
    body = json.loads(request.content)
    assert body["to"] == "ExponentPushToken[abc]"
    assert body["title"] == "T"


@pytest.mark.asyncio
async def test_deliver_reports_rejection(service, httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url="https://exp.host/--/api/v2/push/send",
        status_code=400,
        text="bad token",
    )

    ok = await service.deliver(PushTarget(token="bad", platform="android"), "T", "B")

    assert ok is False


@pytest.mark.asyncio
async def test_deliver_network_error(service, httpx_mock):
    httpx_mock.add_exception(httpx.ConnectError("unreachable"))

    ok = await service.deliver(PushTarget(token="tok", platform="ios"), "T", "B")

    assert ok is False


@pytest.mark.asyncio
async def test_cancel_meeting_reminders_only_drops_that_meeting(service, fake_redis):
    await service.register_push_token("user-1", "ExponentPushToken[abc]", "ios")
    for meeting_id in ("meeting-1", "meeting-2"):
        await service.schedule_meeting_reminder(
            "user-1", "Soon", meeting_id, NOW + timedelta(hours=1), meeting_id=meeting_id, now=NOW
        )

    removed = await service.cancel_meeting_reminders("meeting-1")

    assert removed == 1
    remaining = [json.loads(m)["meeting_id"] for m in fake_redis.sorted_sets[REMINDER_QUEUE_KEY]]
    assert remaining == ["meeting-2"]
    assert await service.cancel_meeting_reminders("meeting-1") == 0
