"""
Reminder Dispatch Job.
Polls the reminder queue and delivers meeting reminders whose time has come.
"""

import asyncio
from datetime import UTC, datetime

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.services.notification_service import NotificationService, notification_service
from app.services.redis_client import fast_redis

logger = get_logger(__name__)


class ReminderDispatchJob:
    """Delivers due reminders one batch per run."""

    def __init__(self, notifications: NotificationService = notification_service):
        self.notifications = notifications
        self.is_running = False
        self.last_run_time: datetime | None = None
        self.total_delivered = 0

    async def run_once(self, now: datetime | None = None) -> dict:
        """
        Run a single dispatch pass.

        Returns:
            Dict: run metrics
        """
        if self.is_running:
            logger.warning("Reminder dispatch already running, skipping this iteration")
            return {"skipped": True, "reason": "already_running"}

        self.is_running = True
        started = datetime.now(UTC)
        try:
            delivered = await self.notifications.dispatch_due_reminders(now=now)
            self.total_delivered += delivered
            self.last_run_time = datetime.now(UTC)
            return {
                "skipped": False,
                "delivered": delivered,
                "duration_seconds": round((self.last_run_time - started).total_seconds(), 3),
            }
        finally:
            self.is_running = False

    def get_job_status(self) -> dict:
        return {
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "total_delivered": self.total_delivered,
            "poll_interval_seconds": settings.REMINDER_POLL_INTERVAL_SECONDS,
        }


reminder_dispatch_job = ReminderDispatchJob()


async def run_reminder_dispatch_job() -> dict:
    """Run a single iteration of the reminder dispatch job."""
    return await reminder_dispatch_job.run_once()


async def start_reminder_dispatch_scheduler():
    """Poll the reminder queue forever. Intended for a dedicated worker process."""
    logger.info(
        "Starting reminder dispatch scheduler",
        interval_seconds=settings.REMINDER_POLL_INTERVAL_SECONDS,
    )
    await fast_redis.initialize()

    try:
        while True:
            try:
                metrics = await run_reminder_dispatch_job()
                if metrics.get("delivered"):
                    logger.info("Reminder dispatch cycle completed", **metrics)
            except Exception as e:
                logger.error(
                    "Error in reminder dispatch scheduler",
                    error=str(e),
                    error_type=type(e).__name__,
                )
            await asyncio.sleep(settings.REMINDER_POLL_INTERVAL_SECONDS)
    finally:
        await fast_redis.close()
