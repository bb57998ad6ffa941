"""
In-process change feed for message rows.

The store publishes one MessageEvent per committed insert/update; each
Subscription receives the events of its scope (one session, or all) in
publish order through its own queue. A Subscription is an async iterator
with an explicit close; closing removes it from the feed and ends iteration.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

from moderation.infra.logging_config import get_logger
from moderation.schemas.message import MessageEvent

logger = get_logger("feed")

_CLOSED = object()


class Subscription:
    """Cancellable handle over the events of one scope."""

    def __init__(self, feed: "MessageFeed", session_id: Optional[str] = None) -> None:
        self._feed = feed
        self.session_id = session_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def scope(self) -> str:
        return self.session_id or "*"

    def matches(self, event: MessageEvent) -> bool:
        return self.session_id is None or event.new.session_id == self.session_id

    def deliver(self, event: MessageEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    def drain_nowait(self) -> List[MessageEvent]:
        """Pop every event already queued without waiting."""
        events: List[MessageEvent] = []
        while not self._closed:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            if item is _CLOSED:
                break
            events.append(item)
        return events

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed._remove(self)
        self._queue.put_nowait(_CLOSED)
        logger.info("Closed subscription for scope %s", self.scope)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> MessageEvent:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self._closed:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class MessageFeed:
    """Fan-out of committed message changes to open subscriptions."""

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, session_id: Optional[str] = None) -> Subscription:
        subscription = Subscription(self, session_id)
        self._subscriptions.append(subscription)
        logger.info("Opened subscription for scope %s", subscription.scope)
        return subscription

    def publish(self, event: MessageEvent) -> None:
        logger.debug(
            "Publishing %s for message %s in session %s",
            event.type.value,
            event.new.id,
            event.new.session_id,
        )
        for subscription in list(self._subscriptions):
            if subscription.matches(event):
                subscription.deliver(event)

    def _remove(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass
