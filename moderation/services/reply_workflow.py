"""
Audit-gated reply workflow for one session.

A reply may be sent only from Passed, and only while the draft is exactly
the text that was audited. Any edit drops a verdict back to Idle; an audit
result that arrives after the draft changed (or after a newer audit started)
is discarded. Sending inserts the reply first and only then resolves the
session's pending messages.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Awaitable, Optional, TypeVar

from moderation.adapters.base import AuditGateway, MessageStore
from moderation.core.errors import AuditTimeoutError, SendError, TransportError, ValidationError
from moderation.infra.logging_config import get_logger
from moderation.schemas.message import (
    MessageCreate,
    MessageRead,
    MessageRole,
    MessageSource,
    MessageStatus,
)
from moderation.schemas.reply import (
    AuditDecision,
    AuditVerdict,
    Auditing,
    Blocked,
    Idle,
    Passed,
    ReplyState,
    ReplyStateRead,
    ReplyStatus,
    Sending,
)

logger = get_logger("reply_workflow")

DEFAULT_BLOCK_ADVICE = "This message was flagged by the AI auditor."

STEP_INSERT = "insert"
STEP_RESOLVE = "resolve"

T = TypeVar("T")


class ReplyWorkflow:
    def __init__(
        self,
        session_id: Optional[str],
        store: MessageStore,
        audit_gateway: AuditGateway,
        audit_timeout: Optional[float] = None,
        send_timeout: Optional[float] = None,
    ) -> None:
        self._session_id = session_id
        self._store = store
        self._audit_gateway = audit_gateway
        self._audit_timeout = audit_timeout
        self._send_timeout = send_timeout
        self._draft = ""
        self._state: ReplyState = Idle()
        self._tickets = itertools.count(1)

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def draft(self) -> str:
        return self._draft

    @property
    def state(self) -> ReplyState:
        return self._state

    @property
    def status(self) -> ReplyStatus:
        return self._state.status

    @property
    def can_audit(self) -> bool:
        return bool(self._draft.strip()) and not isinstance(
            self._state, (Auditing, Sending)
        )

    @property
    def can_send(self) -> bool:
        state = self._state
        return (
            self._session_id is not None
            and isinstance(state, Passed)
            and state.text == self._draft
        )

    def snapshot(self) -> ReplyStateRead:
        state = self._state
        return ReplyStateRead(
            session_id=self._session_id,
            status=state.status,
            draft=self._draft,
            advice=state.advice if isinstance(state, Blocked) else None,
            can_audit=self.can_audit,
            can_send=self.can_send,
            resolution_pending=isinstance(state, Passed) and state.reply is not None,
        )

    def update_draft(self, text: str) -> ReplyState:
        """Replace the draft; any change invalidates a verdict or in-flight audit."""
        if text == self._draft:
            return self._state
        if isinstance(self._state, Sending):
            raise ValidationError("Cannot edit the draft while the reply is sending")
        self._draft = text
        if isinstance(self._state, Passed) and self._state.reply is not None:
            logger.warning(
                "Draft edited in session %s before pending messages were resolved",
                self._session_id,
            )
        if not isinstance(self._state, Idle):
            self._state = Idle()
        return self._state

    async def request_audit(self) -> ReplyState:
        """
        Audit the current draft.

        Raises ValidationError (empty draft, audit or send in flight) without
        calling the gateway. Request failures and timeouts return the
        workflow to Idle and are re-raised; a BLOCK is a state, not an error.
        """
        text = self._draft
        if not text.strip():
            raise ValidationError("Please enter a message to audit")
        if isinstance(self._state, (Auditing, Sending)):
            raise ValidationError("An audit or send is already in progress")

        ticket = next(self._tickets)
        self._state = Auditing(text=text, ticket=ticket)
        verdict: Optional[AuditVerdict] = None
        try:
            verdict = await self._bounded(
                self._audit_gateway.audit(text), self._audit_timeout
            )
        except asyncio.TimeoutError as e:
            raise AuditTimeoutError(
                f"Audit did not answer within {self._audit_timeout} seconds"
            ) from e
        finally:
            if verdict is None:
                self._abandon_audit(ticket)

        if not self._is_current_audit(ticket, text):
            logger.info(
                "Discarding stale audit result for session %s", self._session_id
            )
            return self._state

        if verdict.status == AuditDecision.BLOCK:
            self._state = Blocked(text=text, advice=verdict.advice or DEFAULT_BLOCK_ADVICE)
        else:
            self._state = Passed(text=text)
        logger.info(
            "Audit for session %s: %s", self._session_id, self._state.status.value
        )
        return self._state

    async def send(self) -> MessageRead:
        """
        Insert the reply, then resolve the session's pending messages.

        Only allowed from Passed for the current draft. On success the draft
        is cleared and the state returns to Idle. A failed step raises
        SendError naming the step; the draft and verdict are kept so the
        operator can retry, and a retry after a failed resolve skips the
        insert.
        """
        if not self._session_id:
            raise ValidationError("No session selected")
        text = self._draft
        if not text.strip():
            raise ValidationError("Please enter a message")
        state = self._state
        if not isinstance(state, Passed) or state.text != text:
            raise ValidationError("Please audit your message first")

        session_id = self._session_id
        reply = state.reply
        self._state = Sending(text=text)
        step = STEP_INSERT
        timed_out = False
        completed = False
        try:
            if reply is None:
                reply = await self._bounded(
                    self._store.insert(
                        MessageCreate(
                            session_id=session_id,
                            role=MessageRole.HUMAN_AGENT,
                            content=text.strip(),
                            status=MessageStatus.RESOLVED,
                            source=MessageSource.WEB,
                        )
                    ),
                    self._send_timeout,
                )
            step = STEP_RESOLVE
            resolved = await self._bounded(
                self._store.update_status(
                    session_id, MessageStatus.PENDING_HUMAN, MessageStatus.RESOLVED
                ),
                self._send_timeout,
            )
            completed = True
        except asyncio.TimeoutError as e:
            timed_out = True
            raise SendError(
                step, self._failure_detail(step, "timed out"), timed_out=True, cause=e
            ) from e
        except TransportError as e:
            raise SendError(step, self._failure_detail(step, str(e)), cause=e) from e
        finally:
            if completed:
                self._draft = ""
                self._state = Idle()
            else:
                self._state = self._state_after_failure(text, step, reply, timed_out)

        logger.info(
            "Sent reply %s in session %s, resolved %d pending messages",
            reply.id,
            session_id,
            len(resolved),
        )
        return reply

    def _state_after_failure(
        self,
        text: str,
        step: str,
        reply: Optional[MessageRead],
        timed_out: bool,
    ) -> ReplyState:
        if step == STEP_RESOLVE:
            return Passed(text=text, reply=reply)
        if timed_out:
            # The insert may or may not have happened: require a fresh audit
            return Idle()
        return Passed(text=text)

    def _failure_detail(self, step: str, reason: str) -> str:
        if step == STEP_INSERT:
            return f"Failed to send message: {reason}"
        return (
            "Reply was saved but pending messages were not resolved: "
            f"{reason}"
        )

    def _abandon_audit(self, ticket: int) -> None:
        state = self._state
        if isinstance(state, Auditing) and state.ticket == ticket:
            self._state = Idle()

    def _is_current_audit(self, ticket: int, text: str) -> bool:
        state = self._state
        return (
            isinstance(state, Auditing)
            and state.ticket == ticket
            and self._draft == text
        )

    async def _bounded(self, awaitable: Awaitable[T], timeout: Optional[float]) -> T:
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout)
