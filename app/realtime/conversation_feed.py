"""
Live conversation lists for open inbox streams.

Each open stream gets a queue holding the latest conversation snapshot. The
first stream a user opens registers a realtime handler for messages sent to
them; every notification triggers a coalesced re-fetch whose result is
published to all of that user's streams.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from app.infrastructure.observability.logging import get_logger
from app.models.domain.message_domain import Conversation
from app.realtime.coalescer import CoalescingRefresher
from app.realtime.message_listener import MessageListener, NewMessageEvent
from app.services.conversation_service import fetch_conversations

logger = get_logger(__name__)

ConversationFetcher = Callable[[str], Awaitable[list[Conversation]]]

# Sentinel telling a stream to end (sign-out or shutdown)
FEED_CLOSED = None


@dataclass
class _UserFeed:
    refresher: CoalescingRefresher
    unsubscribe: Callable[[], None]
    queues: set[asyncio.Queue] = field(default_factory=set)
    latest: list[Conversation] | None = None


class ConversationFeed:
    def __init__(
        self, listener: MessageListener, fetch: ConversationFetcher = fetch_conversations
    ):
        self._listener = listener
        self._fetch = fetch
        self._feeds: dict[str, _UserFeed] = {}

    def active_users(self) -> list[str]:
        return list(self._feeds)

    def refresher_for(self, user_id: str) -> CoalescingRefresher | None:
        feed = self._feeds.get(user_id)
        return feed.refresher if feed else None

    def subscribe(self, user_id: str) -> asyncio.Queue:
        """Open a stream for user_id. The current snapshot is delivered once loaded."""
        feed = self._feeds.get(user_id)
        if feed is None:
            refresher = CoalescingRefresher(lambda: self._refresh(user_id), name=user_id)

            def _on_new_message(event: NewMessageEvent) -> None:
                refresher.trigger()

            feed = _UserFeed(
                refresher=refresher,
                unsubscribe=self._listener.subscribe(user_id, _on_new_message),
            )
            self._feeds[user_id] = feed
            logger.info("Conversation feed opened", user_id=user_id)

        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        feed.queues.add(queue)

        if feed.latest is not None:
            _offer(queue, feed.latest)
        feed.refresher.trigger()
        return queue

    async def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        feed = self._feeds.get(user_id)
        if feed is None:
            return
        feed.queues.discard(queue)
        if not feed.queues:
            await self._teardown(user_id)

    async def _refresh(self, user_id: str) -> None:
        conversations = await self._fetch(user_id)
        feed = self._feeds.get(user_id)
        if feed is None:
            return
        feed.latest = conversations
        for queue in feed.queues:
            _offer(queue, conversations)

    async def close_user(self, user_id: str) -> None:
        """End every stream the user has open."""
        feed = self._feeds.get(user_id)
        if feed is None:
            return
        for queue in feed.queues:
            _offer(queue, FEED_CLOSED)
        await self._teardown(user_id)

    async def close(self) -> None:
        for user_id in list(self._feeds):
            await self.close_user(user_id)

    async def _teardown(self, user_id: str) -> None:
        feed = self._feeds.pop(user_id, None)
        if feed is None:
            return
        feed.unsubscribe()
        await feed.refresher.close()
        logger.info("Conversation feed closed", user_id=user_id)


def _offer(queue: asyncio.Queue, item) -> None:
    """Replace whatever the queue holds; slow readers only ever see the newest snapshot."""
    while not queue.empty():
        queue.get_nowait()
    queue.put_nowait(item)
