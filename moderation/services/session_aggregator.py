"""
Session roster derived from the full message log.

fold_sessions/sort_sessions are pure; SessionAggregator re-runs the full
read-and-fold on every change event instead of patching the previous fold,
because a status update can clear a session's pending flag only if no other
message of that session is still pending.
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import Dict, Iterable, List, Optional, Tuple

from moderation.adapters.base import MessageStore
from moderation.core.errors import StoreError
from moderation.core.feed import Subscription
from moderation.infra.logging_config import get_logger
from moderation.schemas.message import MessageRead, MessageStatus, SessionSummary

logger = get_logger("session_aggregator")


def _is_newer(message: MessageRead, summary: SessionSummary) -> bool:
    if message.created_at != summary.latest_timestamp:
        return message.created_at > summary.latest_timestamp
    return (message.id or 0) > (summary.latest_message_id or 0)


def fold_message(
    summary: Optional[SessionSummary], message: MessageRead
) -> SessionSummary:
    """
    Fold one message into its session's summary.

    An older message never replaces latest_message/latest_timestamp/source,
    but a pending one always sets has_pending.
    """
    pending = message.status == MessageStatus.PENDING_HUMAN
    if summary is None:
        return SessionSummary(
            session_id=message.session_id,
            latest_message=message.content,
            latest_timestamp=message.created_at,
            latest_message_id=message.id,
            has_pending=pending,
            source=message.source,
            message_count=1,
        )
    update = {
        "message_count": summary.message_count + 1,
        "has_pending": summary.has_pending or pending,
    }
    if _is_newer(message, summary):
        update.update(
            latest_message=message.content,
            latest_timestamp=message.created_at,
            latest_message_id=message.id,
            source=message.source,
        )
    return summary.model_copy(update=update)


def fold_sessions(messages: Iterable[MessageRead]) -> Dict[str, SessionSummary]:
    """Single-pass reduction of messages into one summary per session_id."""
    folded: Dict[str, SessionSummary] = {}
    for message in messages:
        folded[message.session_id] = fold_message(
            folded.get(message.session_id), message
        )
    return folded


def session_sort_key(summary: SessionSummary) -> Tuple[bool, float, str]:
    return (
        not summary.has_pending,
        -summary.latest_timestamp.timestamp(),
        summary.session_id,
    )


def sort_sessions(summaries: Iterable[SessionSummary]) -> List[SessionSummary]:
    """Pending sessions first, then latest_timestamp descending, then session_id."""
    return sorted(summaries, key=session_sort_key)


def summarize_sessions(messages: Iterable[MessageRead]) -> List[SessionSummary]:
    return sort_sessions(fold_sessions(messages).values())


class SessionAggregator:
    """Live, read-only, ordered sequence of session summaries."""

    def __init__(self, store: MessageStore) -> None:
        self._store = store
        self._sessions: Tuple[SessionSummary, ...] = ()
        self._subscription: Optional[Subscription] = None
        self._task: Optional[asyncio.Task] = None
        self.loaded = False
        self.revision = 0
        self.last_error: Optional[str] = None

    @property
    def sessions(self) -> Tuple[SessionSummary, ...]:
        return self._sessions

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Subscribe to all messages, fold the snapshot, then follow the feed."""
        if self._subscription is not None:
            return
        # Subscribe before the snapshot so no change between the two is missed
        self._subscription = self._store.subscribe()
        try:
            await self.refresh()
        except BaseException:
            self._close_subscription()
            raise
        self._task = asyncio.create_task(self._follow(self._subscription))
        logger.info("Session aggregator started with %d sessions", len(self._sessions))

    async def stop(self) -> None:
        task = self._task
        self._task = None
        self._close_subscription()
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        logger.info("Session aggregator stopped")

    async def refresh(self) -> bool:
        """
        Re-read every message and rebuild the sorted summaries.

        On StoreError the previous sequence is kept and False is returned.
        """
        try:
            messages = await self._store.select()
        except StoreError as e:
            self.last_error = str(e)
            logger.warning(
                "Session refresh failed, keeping %d sessions: %s",
                len(self._sessions),
                e,
            )
            return False
        self._sessions = tuple(summarize_sessions(messages))
        self.loaded = True
        self.revision += 1
        self.last_error = None
        return True

    def get(self, session_id: str) -> Optional[SessionSummary]:
        for summary in self._sessions:
            if summary.session_id == session_id:
                return summary
        return None

    async def _follow(self, subscription: Subscription) -> None:
        async for event in subscription:
            # A burst of events needs only one re-fold
            skipped = subscription.drain_nowait()
            logger.debug(
                "Refreshing sessions after %s on message %s (+%d queued)",
                event.type.value,
                event.new.id,
                len(skipped),
            )
            try:
                await self.refresh()
            except Exception as e:
                # Keep following; the stale sequence stays until a refresh succeeds
                self.last_error = str(e)
                logger.exception("Unexpected error refreshing sessions")

    def _close_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
