"""
Application session.

Built once in the FastAPI lifespan and stored on app.state; routes receive it
through the get_app_session dependency. It owns the long-lived realtime and
notification collaborators and tears them down explicitly, either for one
user on sign-out or for everyone at shutdown.
"""

from fastapi import HTTPException, Request, status

from app.infrastructure.observability.logging import get_logger
from app.realtime.conversation_feed import ConversationFeed
from app.realtime.message_listener import MessageListener
from app.services.notification_service import NotificationService, notification_service

logger = get_logger(__name__)


class ApplicationSession:
    def __init__(
        self,
        listener: MessageListener,
        feed: ConversationFeed,
        notifications: NotificationService,
    ):
        self.listener = listener
        self.feed = feed
        self.notifications = notifications
        self._started = False

    @classmethod
    def create(cls) -> "ApplicationSession":
        listener = MessageListener()
        return cls(
            listener=listener,
            feed=ConversationFeed(listener),
            notifications=notification_service,
        )

    async def start(self) -> None:
        if self._started:
            return
        await self.listener.start()
        self._started = True
        logger.info("Application session started")

    async def close(self) -> None:
        await self.feed.close()
        await self.listener.stop()
        self._started = False
        logger.info("Application session closed")

    async def sign_out(self, user_id: str) -> dict:
        """End the user's live streams and forget their push token and reminders."""
        await self.feed.close_user(user_id)
        reminders_removed = await self.notifications.clear_user_notifications(user_id)
        logger.info("User signed out", user_id=user_id, reminders_removed=reminders_removed)
        return {"streams_closed": True, "reminders_removed": reminders_removed}


def get_app_session(request: Request) -> ApplicationSession:
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting up"
        )
    return session
