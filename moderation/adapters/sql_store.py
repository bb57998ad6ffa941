"""
SQLAlchemy-backed message store.

Each operation runs its DB session in a worker thread so the event loop
never blocks on the database. After a write commits, one change event per
affected row is handed back to the loop and published to the feed, even if
the caller stopped waiting for the result.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from moderation.adapters.base import MessageStore
from moderation.core.errors import StoreError
from moderation.core.feed import MessageFeed, Subscription
from moderation.infra.logging_config import get_logger
from moderation.schemas.message import (
    MessageCreate,
    MessageEvent,
    MessageEventType,
    MessageRead,
    MessageStatus,
)
from moderation.services.message_service import MessageService

logger = get_logger("sql_store")


class SqlMessageStore(MessageStore):
    """Message store over a SQL database, with an in-process change feed."""

    def __init__(
        self, session_factory: sessionmaker, feed: Optional[MessageFeed] = None
    ) -> None:
        self._session_factory = session_factory
        self.feed = feed or MessageFeed()

    async def select(self, session_id: Optional[str] = None) -> List[MessageRead]:
        return await asyncio.to_thread(self._select, session_id)

    async def insert(self, data: MessageCreate) -> MessageRead:
        loop = asyncio.get_running_loop()
        return await asyncio.to_thread(self._insert, data, loop)

    async def update_status(
        self,
        session_id: str,
        from_status: MessageStatus,
        to_status: MessageStatus,
    ) -> List[MessageRead]:
        loop = asyncio.get_running_loop()
        return await asyncio.to_thread(
            self._update_status, session_id, from_status, to_status, loop
        )

    def subscribe(self, session_id: Optional[str] = None) -> Subscription:
        return self.feed.subscribe(session_id)

    def _select(self, session_id: Optional[str]) -> List[MessageRead]:
        try:
            with self._session_factory() as db:
                rows = MessageService(db).get_messages(session_id)
                return [MessageRead.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error("Failed to read messages (session=%s): %s", session_id, e)
            raise StoreError(f"Failed to read messages: {e}") from e

    def _insert(
        self, data: MessageCreate, loop: asyncio.AbstractEventLoop
    ) -> MessageRead:
        try:
            with self._session_factory() as db:
                row = MessageService(db).create_message(data)
                message = MessageRead.model_validate(row)
        except SQLAlchemyError as e:
            logger.error("Failed to insert message in session %s: %s", data.session_id, e)
            raise StoreError(f"Failed to insert message: {e}") from e
        self._publish(loop, [MessageEvent(type=MessageEventType.INSERT, new=message)])
        return message

    def _update_status(
        self,
        session_id: str,
        from_status: MessageStatus,
        to_status: MessageStatus,
        loop: asyncio.AbstractEventLoop,
    ) -> List[MessageRead]:
        try:
            with self._session_factory() as db:
                rows = MessageService(db).update_status(
                    session_id, from_status, to_status
                )
                updated = [MessageRead.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error("Failed to update statuses in session %s: %s", session_id, e)
            raise StoreError(f"Failed to update messages: {e}") from e
        self._publish(
            loop,
            [MessageEvent(type=MessageEventType.UPDATE, new=m) for m in updated],
        )
        return updated

    def _publish(
        self, loop: asyncio.AbstractEventLoop, events: List[MessageEvent]
    ) -> None:
        # Subscriptions are loop-bound; scheduled ahead of the caller's wakeup
        try:
            for event in events:
                loop.call_soon_threadsafe(self.feed.publish, event)
        except RuntimeError as e:
            logger.warning("Dropping change events, event loop is gone: %s", e)
