"""
Realtime "new message" notifications over Postgres LISTEN/NOTIFY.

A trigger on the messages table (see sql/schema.sql) sends one NOTIFY per
insert with a JSON payload carrying the message id, sender_id and
receiver_id. The listener holds a dedicated autocommit connection outside the
pool and fans each notification out to the handlers subscribed for that
receiver.
"""

import asyncio
import contextlib
from collections.abc import Callable

import psycopg
from psycopg import sql
from pydantic import BaseModel, ValidationError

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class NewMessageEvent(BaseModel):
    id: str
    sender_id: str
    receiver_id: str


MessageHandler = Callable[[NewMessageEvent], None]


class MessageListener:
    """
    Subscribe to message inserts filtered by receiver id.

    Handlers run inline on the listener task, so they must not block; hand off
    real work (e.g. CoalescingRefresher.trigger).
    """

    def __init__(
        self,
        conninfo: str | None = None,
        channel: str | None = None,
        connect: Callable = psycopg.AsyncConnection.connect,
    ):
        self._conninfo = conninfo or settings.SUPABASE_DB_URL
        self._channel = channel or settings.REALTIME_MESSAGE_CHANNEL
        self._connect = connect
        self._handlers: dict[str, list[MessageHandler]] = {}
        self._task: asyncio.Task | None = None
        self.connected = False

    def subscribe(self, receiver_id: str, handler: MessageHandler) -> Callable[[], None]:
        """Register a handler for messages sent to receiver_id. Returns an unsubscribe callable."""
        self._handlers.setdefault(receiver_id, []).append(handler)
        logger.debug("Realtime handler subscribed", receiver_id=receiver_id)

        def _unsubscribe() -> None:
            handlers = self._handlers.get(receiver_id, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._handlers.pop(receiver_id, None)

        return _unsubscribe

    def subscriber_count(self, receiver_id: str) -> int:
        return len(self._handlers.get(receiver_id, []))

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def dispatch(self, payload: str) -> int:
        """Route one NOTIFY payload to its receiver's handlers. Returns how many ran."""
        try:
            event = NewMessageEvent.model_validate_json(payload)
        except ValidationError as e:
            logger.warning("Ignoring malformed message notification", error=str(e))
            return 0

        handled = 0
        for handler in list(self._handlers.get(event.receiver_id, [])):
            try:
                handler(event)
                handled += 1
            except Exception as e:
                logger.error(
                    "Realtime handler failed",
                    receiver_id=event.receiver_id,
                    message_id=event.id,
                    error=str(e),
                )
        return handled

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name="message-listener")
        logger.info("Message listener started", channel=self._channel)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        self.connected = False
        logger.info("Message listener stopped")

    async def _run(self) -> None:
        delay = settings.REALTIME_RECONNECT_BASE_DELAY

        while True:
            try:
                conn = await self._connect(self._conninfo, autocommit=True)
                async with conn:
                    await conn.execute(sql.SQL("LISTEN {}").format(sql.Identifier(self._channel)))
                    self.connected = True
                    delay = settings.REALTIME_RECONNECT_BASE_DELAY
                    logger.info("Listening for new messages", channel=self._channel)

                    async for notify in conn.notifies():
                        self.dispatch(notify.payload)

            except (psycopg.Error, OSError) as e:
                self.connected = False
                logger.warning(
                    "Message listener connection lost, reconnecting",
                    error=str(e),
                    retry_in=delay,
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, settings.REALTIME_RECONNECT_MAX_DELAY)
