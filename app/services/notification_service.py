"""
Push notification scheduling for meeting reminders and instant alerts.

Everything here is best-effort: methods return a bool, log failures and never
raise into the calling request. Delivery is a no-op for users on the web
platform and for users who never registered a push token.

Reminders are queued in a Redis sorted set scored by their due time and
delivered by the reminder_dispatch worker job through the Expo push API.
"""

import json
import uuid
from datetime import UTC, datetime, timedelta
from typing import Literal

import httpx
from pydantic import BaseModel, ValidationError

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.services.redis_client import FastRedisClient, fast_redis

logger = get_logger(__name__)

PushPlatform = Literal["ios", "android", "web"]

REMINDER_QUEUE_KEY = "notifications:reminders"
PUSH_TOKEN_KEY_PREFIX = "notifications:push_token:"

# Platforms without local notification support
SILENT_PLATFORMS = frozenset({"web"})


class PushTarget(BaseModel):
    token: str
    platform: PushPlatform


class ScheduledReminder(BaseModel):
    id: str
    user_id: str
    meeting_id: str | None = None
    title: str
    body: str
    trigger_at: datetime


def reminder_trigger_time(meeting_time: datetime, lead_minutes: int | None = None) -> datetime:
    """When to fire the reminder for a meeting (default 15 minutes before)."""
    lead = settings.MEETING_REMINDER_LEAD_MINUTES if lead_minutes is None else lead_minutes
    if meeting_time.tzinfo is None:
        meeting_time = meeting_time.replace(tzinfo=UTC)
    return meeting_time - timedelta(minutes=lead)


class NotificationService:
    """Registers push tokens, queues reminders and sends pushes."""

    def __init__(self, redis_client: FastRedisClient | None = None):
        self.redis = redis_client or fast_redis

    @staticmethod
    def _token_key(user_id: str) -> str:
        return f"{PUSH_TOKEN_KEY_PREFIX}{user_id}"

    async def register_push_token(self, user_id: str, token: str, platform: PushPlatform) -> bool:
        target = PushTarget(token=token, platform=platform)
        stored = await self.redis.set_with_ttl(self._token_key(user_id), target.model_dump_json())
        if stored:
            logger.info("Push token registered", user_id=user_id, platform=platform)
        return stored

    async def get_push_target(self, user_id: str) -> PushTarget | None:
        raw = await self.redis.get(self._token_key(user_id))
        if not raw:
            return None
        try:
            return PushTarget.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding unreadable push token", user_id=user_id, error=str(e))
            return None

    async def _deliverable_target(self, user_id: str) -> PushTarget | None:
        target = await self.get_push_target(user_id)
        if target is None:
            logger.debug("No push token registered", user_id=user_id)
            return None
        if target.platform in SILENT_PLATFORMS:
            logger.debug("Push skipped for platform", user_id=user_id, platform=target.platform)
            return None
        return target

    async def schedule_meeting_reminder(
        self,
        user_id: str,
        title: str,
        body: str,
        meeting_time: datetime,
        *,
        meeting_id: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """
        Queue a reminder for meeting_time minus the configured lead time.

        Returns False (without queueing) when the user can't receive pushes
        or the reminder time has already passed.
        """
        try:
            if await self._deliverable_target(user_id) is None:
                return False

            trigger_at = reminder_trigger_time(meeting_time)
            current = now or datetime.now(UTC)
            if trigger_at <= current:
                logger.info(
                    "Reminder time already passed, not scheduling",
                    user_id=user_id,
                    trigger_at=trigger_at.isoformat(),
                )
                return False

            reminder = ScheduledReminder(
                id=str(uuid.uuid4()),
                user_id=user_id,
                meeting_id=meeting_id,
                title=title,
                body=body,
                trigger_at=trigger_at,
            )
            queued = await self.redis.zadd(
                REMINDER_QUEUE_KEY, reminder.model_dump_json(), trigger_at.timestamp()
            )
            if queued:
                logger.info(
                    "Meeting reminder scheduled",
                    user_id=user_id,
                    reminder_id=reminder.id,
                    trigger_at=trigger_at.isoformat(),
                )
            return queued

        except Exception as e:
            logger.error("Failed to schedule meeting reminder", user_id=user_id, error=str(e))
            return False

    async def send_local_notification(self, user_id: str, title: str, body: str) -> bool:
        """Push a notification right away."""
        try:
            target = await self._deliverable_target(user_id)
            if target is None:
                return False
            return await self.deliver(target, title, body)
        except Exception as e:
            logger.error("Failed to send notification", user_id=user_id, error=str(e))
            return False

    async def deliver(self, target: PushTarget, title: str, body: str) -> bool:
        """POST a single message to the Expo push API."""
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if settings.EXPO_ACCESS_TOKEN:
            headers["Authorization"] = f"Bearer {settings.EXPO_ACCESS_TOKEN}"

        payload = {"to": target.token, "title": title, "body": body, "sound": "default"}

        try:
            async with httpx.AsyncClient(timeout=settings.PUSH_TIMEOUT_SECONDS) as client:
                response = await client.post(settings.EXPO_PUSH_URL, json=payload, headers=headers)
        except httpx.RequestError as e:
            logger.warning(
                "Push delivery request failed", error=str(e), error_type=type(e).__name__
            )
            return False

        if response.status_code >= 400:
            logger.warning(
                "Push delivery rejected",
                status_code=response.status_code,
                response_preview=response.text[:200],
            )
            return False
        return True

    async def dispatch_due_reminders(self, now: datetime | None = None) -> int:
        """
        Deliver every queued reminder whose trigger time has passed.

        Each entry is claimed with ZREM before delivery, so concurrent
        dispatchers never send the same reminder twice.

        Returns:
            Number of reminders delivered
        """
        current = now or datetime.now(UTC)
        due = await self.redis.zrangebyscore(
            REMINDER_QUEUE_KEY, 0, current.timestamp(), limit=settings.REMINDER_BATCH_SIZE
        )

        delivered = 0
        for raw in due:
            if await self.redis.zrem(REMINDER_QUEUE_KEY, raw) != 1:
                continue

            try:
                reminder = ScheduledReminder.model_validate_json(raw)
            except ValidationError as e:
                logger.warning("Dropping unreadable reminder", error=str(e))
                continue

            target = await self._deliverable_target(reminder.user_id)
            if target is None:
                continue

            if await self.deliver(target, reminder.title, reminder.body):
                delivered += 1
                logger.info(
                    "Meeting reminder delivered",
                    user_id=reminder.user_id,
                    reminder_id=reminder.id,
                )

        if due:
            logger.info("Reminder dispatch pass complete", due=len(due), delivered=delivered)
        return delivered

    async def _remove_queued_reminders(self, field: str, value: str) -> int:
        """Drop every queued reminder whose payload has field == value."""
        queued = await self.redis.zrangebyscore(REMINDER_QUEUE_KEY, float("-inf"), float("inf"))
        matching = []
        for raw in queued:
            try:
                if json.loads(raw).get(field) == value:
                    matching.append(raw)
            except (json.JSONDecodeError, AttributeError):
                continue
        return await self.redis.zrem(REMINDER_QUEUE_KEY, *matching)

    async def cancel_meeting_reminders(self, meeting_id: str) -> int:
        """Drop the queued reminders of a cancelled meeting. Returns how many were removed."""
        try:
            removed = await self._remove_queued_reminders("meeting_id", meeting_id)
        except Exception as e:
            logger.error("Failed to cancel meeting reminders", meeting_id=meeting_id, error=str(e))
            return 0

        if removed:
            logger.info("Meeting reminders cancelled", meeting_id=meeting_id, removed=removed)
        return removed

    async def clear_user_notifications(self, user_id: str) -> int:
        """Forget the user's push token and drop their queued reminders."""
        await self.redis.delete(self._token_key(user_id))

        removed = await self._remove_queued_reminders("user_id", user_id)
        logger.info("Notification state cleared", user_id=user_id, reminders_removed=removed)
        return removed


notification_service = NotificationService()
