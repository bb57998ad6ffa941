"""Live, created_at-ordered view of the messages of the selected session."""

from __future__ import annotations

import asyncio
from typing import List, Optional, Tuple

from moderation.adapters.base import MessageStore
from moderation.core.errors import StoreError
from moderation.core.feed import Subscription
from moderation.infra.logging_config import get_logger
from moderation.schemas.message import MessageEvent, MessageEventType, MessageRead

logger = get_logger("session_timeline")


class SessionTimeline:
    """
    Snapshot plus live patches for one session at a time.

    Inserts are appended (no re-sort), updates replace the message with the
    same id in place. Every activation owns exactly one subscription, closed
    when the session changes, is cleared, or the snapshot fails.
    """

    def __init__(self, store: MessageStore) -> None:
        self._store = store
        self._session_id: Optional[str] = None
        self._messages: List[MessageRead] = []
        self._loading = False
        self._subscription: Optional[Subscription] = None
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self.last_error: Optional[str] = None

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def messages(self) -> Tuple[MessageRead, ...]:
        return tuple(self._messages)

    @property
    def loading(self) -> bool:
        return self._loading

    async def activate(self, session_id: Optional[str]) -> None:
        self._teardown()
        self._generation += 1
        generation = self._generation
        self._session_id = session_id
        self._messages = []
        self._loading = False
        self.last_error = None
        if session_id is None:
            return

        subscription = self._store.subscribe(session_id)
        self._subscription = subscription
        self._loading = True
        snapshot: Optional[List[MessageRead]] = None
        try:
            snapshot = await self._store.select(session_id)
        except StoreError as e:
            logger.warning("Failed to load messages for session %s: %s", session_id, e)
            if generation == self._generation:
                self.last_error = str(e)
        finally:
            if generation == self._generation:
                self._loading = False
                if snapshot is None:
                    self._teardown()
            else:
                subscription.close()

        if snapshot is None or generation != self._generation:
            return
        self._messages = list(snapshot)
        self._task = asyncio.create_task(self._follow(subscription, generation))
        logger.info(
            "Timeline for session %s loaded with %d messages",
            session_id,
            len(self._messages),
        )

    async def deactivate(self) -> None:
        await self.activate(None)

    def apply_event(self, event: MessageEvent) -> None:
        message = event.new
        if message.session_id != self._session_id:
            return
        if event.type == MessageEventType.INSERT:
            # The snapshot may already hold a row inserted while it was read
            if any(existing.id == message.id for existing in self._messages):
                return
            self._messages.append(message)
        elif event.type == MessageEventType.UPDATE:
            for index, existing in enumerate(self._messages):
                if existing.id == message.id:
                    self._messages[index] = message
                    break

    async def _follow(self, subscription: Subscription, generation: int) -> None:
        async for event in subscription:
            if generation != self._generation:
                break
            logger.debug(
                "Timeline %s: %s message %s",
                self._session_id,
                event.type.value,
                event.new.id,
            )
            try:
                self.apply_event(event)
            except Exception:
                logger.exception(
                    "Failed to apply %s for message %s in session %s",
                    event.type.value,
                    event.new.id,
                    self._session_id,
                )

    def _teardown(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        if self._task is not None:
            self._task.cancel()
            self._task = None
