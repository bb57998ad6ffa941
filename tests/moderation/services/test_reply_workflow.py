import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from moderation.adapters.base import MessageStore
from moderation.adapters.sql_store import SqlMessageStore
from moderation.core.errors import (
    AuditRequestError,
    AuditTimeoutError,
    SendError,
    StoreError,
    ValidationError,
)
from moderation.schemas.message import MessageRole, MessageStatus
from moderation.schemas.reply import (
    AuditDecision,
    AuditVerdict,
    Blocked,
    Idle,
    Passed,
    ReplyStatus,
)
from moderation.services.reply_workflow import (
    DEFAULT_BLOCK_ADVICE,
    STEP_INSERT,
    STEP_RESOLVE,
    ReplyWorkflow,
)


@pytest.fixture
def mock_store(message_factory):
    store = MagicMock(spec=MessageStore)

    async def insert(data):
        return message_factory(
            session_id=data.session_id,
            role=data.role,
            content=data.content,
            status=data.status,
        )

    store.insert = AsyncMock(side_effect=insert)
    store.update_status = AsyncMock(return_value=[])
    return store


@pytest.fixture
def workflow(mock_store, audit_gateway):
    return ReplyWorkflow("s1", mock_store, audit_gateway)


async def _pass(workflow, text):
    workflow.update_draft(text)
    await workflow.request_audit()
    assert workflow.status == ReplyStatus.PASS


def test_initial_state(workflow):
    assert workflow.status == ReplyStatus.IDLE
    assert workflow.draft == ""
    assert not workflow.can_audit
    assert not workflow.can_send


@pytest.mark.asyncio
async def test_block_verdict_then_edit_returns_to_idle(workflow, audit_gateway):
    audit_gateway.audit.return_value = AuditVerdict(
        status=AuditDecision.BLOCK, advice="rude"
    )
    workflow.update_draft("hello")

    state = await workflow.request_audit()

    audit_gateway.audit.assert_awaited_once_with("hello")
    assert state == Blocked(text="hello", advice="rude")
    assert workflow.snapshot().advice == "rude"
    assert not workflow.can_send

    workflow.update_draft("hi")

    assert workflow.status == ReplyStatus.IDLE
    assert workflow.snapshot().advice is None
    assert workflow.can_audit


@pytest.mark.asyncio
async def test_block_without_advice_uses_default(workflow, audit_gateway):
    audit_gateway.audit.return_value = AuditVerdict(status=AuditDecision.BLOCK)
    workflow.update_draft("hello")

    await workflow.request_audit()

    assert workflow.state.advice == DEFAULT_BLOCK_ADVICE


@pytest.mark.asyncio
async def test_pass_then_send_inserts_reply_and_resolves_session(
    workflow, mock_store
):
    await _pass(workflow, "ok")
    assert workflow.can_send

    reply = await workflow.send()

    data = mock_store.insert.await_args.args[0]
    assert data.session_id == "s1"
    assert data.role == MessageRole.HUMAN_AGENT
    assert data.status == MessageStatus.RESOLVED
    assert data.content == "ok"
    mock_store.update_status.assert_awaited_once_with(
        "s1", MessageStatus.PENDING_HUMAN, MessageStatus.RESOLVED
    )
    assert reply.content == "ok"
    assert workflow.status == ReplyStatus.IDLE
    assert workflow.draft == ""


@pytest.mark.asyncio
async def test_send_trims_whitespace_from_reply(workflow, mock_store):
    await _pass(workflow, "  ok  ")

    await workflow.send()

    assert mock_store.insert.await_args.args[0].content == "ok"


@pytest.mark.asyncio
async def test_send_from_idle_is_rejected_without_store_calls(workflow, mock_store):
    workflow.update_draft("not audited")

    with pytest.raises(ValidationError, match="audit your message first"):
        await workflow.send()

    mock_store.insert.assert_not_awaited()
    mock_store.update_status.assert_not_awaited()
    assert workflow.status == ReplyStatus.IDLE


@pytest.mark.asyncio
async def test_send_from_blocked_is_rejected(workflow, audit_gateway, mock_store):
    audit_gateway.audit.return_value = AuditVerdict(status=AuditDecision.BLOCK)
    workflow.update_draft("hello")
    await workflow.request_audit()

    with pytest.raises(ValidationError):
        await workflow.send()

    mock_store.insert.assert_not_awaited()
    assert isinstance(workflow.state, Blocked)


@pytest.mark.asyncio
async def test_send_without_session_is_rejected(mock_store, audit_gateway):
    workflow = ReplyWorkflow(None, mock_store, audit_gateway)
    await _pass(workflow, "ok")

    assert not workflow.can_send
    with pytest.raises(ValidationError, match="No session selected"):
        await workflow.send()

    mock_store.insert.assert_not_awaited()


@pytest.mark.asyncio
async def test_edit_after_pass_requires_new_audit(workflow, mock_store):
    await _pass(workflow, "ok")

    workflow.update_draft("ok!")

    assert workflow.status == ReplyStatus.IDLE
    assert not workflow.can_send
    with pytest.raises(ValidationError):
        await workflow.send()
    mock_store.insert.assert_not_awaited()


@pytest.mark.asyncio
async def test_setting_same_text_keeps_verdict(workflow):
    await _pass(workflow, "ok")

    workflow.update_draft("ok")

    assert workflow.state == Passed(text="ok")


@pytest.mark.asyncio
async def test_audit_of_empty_draft_is_rejected(workflow, audit_gateway):
    workflow.update_draft("   ")

    with pytest.raises(ValidationError, match="enter a message to audit"):
        await workflow.request_audit()

    audit_gateway.audit.assert_not_awaited()
    assert workflow.status == ReplyStatus.IDLE


@pytest.mark.asyncio
async def test_audit_request_failure_returns_to_idle(workflow, audit_gateway):
    audit_gateway.audit.side_effect = AuditRequestError("HTTP 500")
    workflow.update_draft("hello")

    with pytest.raises(AuditRequestError):
        await workflow.request_audit()

    assert workflow.state == Idle()
    assert workflow.draft == "hello"
    assert workflow.can_audit


@pytest.mark.asyncio
async def test_audit_timeout_returns_to_idle(mock_store, audit_gateway):
    async def hang(draft):
        await asyncio.sleep(10)

    audit_gateway.audit.side_effect = hang
    workflow = ReplyWorkflow("s1", mock_store, audit_gateway, audit_timeout=0.01)
    workflow.update_draft("hello")

    with pytest.raises(AuditTimeoutError):
        await workflow.request_audit()

    assert workflow.status == ReplyStatus.IDLE


@pytest.mark.asyncio
async def test_edit_during_audit_discards_late_result(workflow, audit_gateway):
    release = asyncio.Event()

    async def slow_audit(draft):
        await release.wait()
        return AuditVerdict(status=AuditDecision.PASS)

    audit_gateway.audit.side_effect = slow_audit
    workflow.update_draft("hello")

    task = asyncio.create_task(workflow.request_audit())
    await asyncio.sleep(0)
    assert workflow.status == ReplyStatus.AUDITING
    assert not workflow.can_audit

    workflow.update_draft("hello world")
    assert workflow.status == ReplyStatus.IDLE

    release.set()
    await task

    assert workflow.status == ReplyStatus.IDLE
    assert workflow.draft == "hello world"
    assert not workflow.can_send


@pytest.mark.asyncio
async def test_second_audit_while_in_flight_is_rejected(workflow, audit_gateway):
    release = asyncio.Event()

    async def slow_audit(draft):
        await release.wait()
        return AuditVerdict(status=AuditDecision.PASS)

    audit_gateway.audit.side_effect = slow_audit
    workflow.update_draft("hello")

    task = asyncio.create_task(workflow.request_audit())
    await asyncio.sleep(0)
    with pytest.raises(ValidationError, match="already in progress"):
        await workflow.request_audit()

    release.set()
    await task
    assert workflow.state == Passed(text="hello")
    assert audit_gateway.audit.await_count == 1


@pytest.mark.asyncio
async def test_insert_failure_keeps_draft_and_verdict(workflow, mock_store):
    await _pass(workflow, "ok")
    mock_store.insert.side_effect = StoreError("write rejected")

    with pytest.raises(SendError) as exc_info:
        await workflow.send()

    assert exc_info.value.step == STEP_INSERT
    assert not exc_info.value.timed_out
    mock_store.update_status.assert_not_awaited()
    assert workflow.state == Passed(text="ok")
    assert workflow.draft == "ok"
    assert workflow.can_send


@pytest.mark.asyncio
async def test_resolve_failure_then_retry_skips_insert(workflow, mock_store):
    await _pass(workflow, "ok")
    mock_store.update_status.side_effect = StoreError("update rejected")

    with pytest.raises(SendError) as exc_info:
        await workflow.send()

    assert exc_info.value.step == STEP_RESOLVE
    assert "Reply was saved" in exc_info.value.detail
    assert workflow.status == ReplyStatus.PASS
    assert workflow.snapshot().resolution_pending
    assert mock_store.insert.await_count == 1

    mock_store.update_status.side_effect = None
    mock_store.update_status.return_value = []
    reply = await workflow.send()

    assert mock_store.insert.await_count == 1
    assert mock_store.update_status.await_count == 2
    assert reply.content == "ok"
    assert workflow.status == ReplyStatus.IDLE
    assert workflow.draft == ""


@pytest.mark.asyncio
async def test_insert_timeout_requires_new_audit(mock_store, audit_gateway):
    async def hang(data):
        await asyncio.sleep(10)

    workflow = ReplyWorkflow("s1", mock_store, audit_gateway, send_timeout=0.01)
    await _pass(workflow, "ok")
    mock_store.insert.side_effect = hang

    with pytest.raises(SendError) as exc_info:
        await workflow.send()

    assert exc_info.value.step == STEP_INSERT
    assert exc_info.value.timed_out
    assert workflow.state == Idle()
    assert workflow.draft == "ok"


@pytest.mark.asyncio
async def test_draft_cannot_change_while_sending(workflow, mock_store, message_factory):
    release = asyncio.Event()

    async def slow_insert(data):
        await release.wait()
        return message_factory(session_id="s1", content=data.content)

    await _pass(workflow, "ok")
    mock_store.insert.side_effect = slow_insert

    task = asyncio.create_task(workflow.send())
    await asyncio.sleep(0)
    assert workflow.status == ReplyStatus.SENDING
    assert not workflow.can_audit
    assert not workflow.can_send

    with pytest.raises(ValidationError):
        workflow.update_draft("changed")
    with pytest.raises(ValidationError):
        await workflow.request_audit()

    release.set()
    await task
    assert workflow.status == ReplyStatus.IDLE


@pytest.mark.asyncio
async def test_send_times_out_against_a_slow_database(
    session_factory, feed, audit_gateway
):
    def slow_session():
        time.sleep(0.5)
        return session_factory()

    store = SqlMessageStore(slow_session, feed)
    subscription = store.subscribe("s1")
    workflow = ReplyWorkflow("s1", store, audit_gateway, send_timeout=0.05)
    await _pass(workflow, "ok")
    loop = asyncio.get_running_loop()
    started = loop.time()

    with pytest.raises(SendError) as exc_info:
        await workflow.send()

    assert loop.time() - started < 0.4
    assert exc_info.value.step == STEP_INSERT
    assert exc_info.value.timed_out
    assert workflow.state == Idle()
    assert workflow.draft == "ok"

    # The insert still commits and reaches subscribers
    event = await asyncio.wait_for(subscription.__anext__(), 2)
    assert event.new.content == "ok"
    assert event.new.role == MessageRole.HUMAN_AGENT
    subscription.close()
