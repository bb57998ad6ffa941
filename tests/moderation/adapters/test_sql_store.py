import asyncio
import time

import pytest

from moderation.adapters.sql_store import SqlMessageStore
from moderation.core.errors import StoreError
from moderation.db import Base
from moderation.schemas.message import (
    MessageCreate,
    MessageEventType,
    MessageRole,
    MessageStatus,
)


@pytest.mark.asyncio
async def test_select_returns_message_reads_in_order(store, make_message):
    second = make_message(session_id="s1", content="second", minutes=2)
    first = make_message(session_id="s1", content="first", minutes=1)

    messages = await store.select("s1")

    assert [m.id for m in messages] == [first.id, second.id]
    assert messages[0].content == "first"
    assert messages[0].created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_insert_publishes_insert_event(store):
    subscription = store.subscribe("s1")

    message = await store.insert(
        MessageCreate(
            session_id="s1",
            role=MessageRole.USER,
            content="hello",
            status=MessageStatus.PENDING_HUMAN,
        )
    )

    events = subscription.drain_nowait()
    assert len(events) == 1
    assert events[0].type == MessageEventType.INSERT
    assert events[0].new == message
    assert message.status == MessageStatus.PENDING_HUMAN

    subscription.close()


@pytest.mark.asyncio
async def test_update_status_publishes_one_update_per_row(store, make_message):
    first = make_message(session_id="s1", status=MessageStatus.PENDING_HUMAN)
    second = make_message(session_id="s1", status=MessageStatus.PENDING_HUMAN, minutes=1)
    make_message(session_id="s2", status=MessageStatus.PENDING_HUMAN)
    subscription = store.subscribe()

    updated = await store.update_status(
        "s1", MessageStatus.PENDING_HUMAN, MessageStatus.RESOLVED
    )

    events = subscription.drain_nowait()
    assert [m.id for m in updated] == [first.id, second.id]
    assert [e.type for e in events] == [MessageEventType.UPDATE] * 2
    assert all(e.new.status == MessageStatus.RESOLVED for e in events)

    remaining = await store.select("s2")
    assert remaining[0].status == MessageStatus.PENDING_HUMAN

    subscription.close()


@pytest.mark.asyncio
async def test_select_failure_raises_store_error(store, engine):
    Base.metadata.drop_all(engine)

    with pytest.raises(StoreError):
        await store.select()


@pytest.mark.asyncio
async def test_failed_insert_publishes_nothing(store, engine):
    subscription = store.subscribe()
    Base.metadata.drop_all(engine)

    with pytest.raises(StoreError):
        await store.insert(
            MessageCreate(session_id="s1", role=MessageRole.USER, content="lost")
        )

    assert subscription.drain_nowait() == []
    subscription.close()


@pytest.mark.asyncio
async def test_slow_database_does_not_block_the_event_loop(session_factory, feed):
    def slow_session():
        time.sleep(0.3)
        return session_factory()

    store = SqlMessageStore(slow_session, feed)
    ticks = 0

    async def ticker():
        nonlocal ticks
        while True:
            await asyncio.sleep(0.01)
            ticks += 1

    task = asyncio.create_task(ticker())
    try:
        assert await store.select() == []
    finally:
        task.cancel()

    assert ticks >= 10


@pytest.mark.asyncio
async def test_insert_is_announced_after_the_caller_stops_waiting(
    session_factory, feed
):
    def slow_session():
        time.sleep(0.2)
        return session_factory()

    store = SqlMessageStore(slow_session, feed)
    subscription = store.subscribe("s1")

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(
            store.insert(
                MessageCreate(session_id="s1", role=MessageRole.USER, content="late")
            ),
            0.05,
        )

    event = await asyncio.wait_for(subscription.__anext__(), 2)
    assert event.type == MessageEventType.INSERT
    assert event.new.content == "late"

    subscription.close()
