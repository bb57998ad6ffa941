"""
Reply workflow states and the schemas exposed to the operator.

The workflow state is a closed set of variants. Each verdict variant carries
the exact text it was computed for, and advice exists only on Blocked.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel

from moderation.schemas.message import MessageRead


class ReplyStatus(str, Enum):
    IDLE = "idle"
    AUDITING = "auditing"
    PASS = "pass"
    BLOCK = "block"
    SENDING = "sending"


class AuditDecision(str, Enum):
    PASS = "PASS"
    BLOCK = "BLOCK"


class AuditVerdict(BaseModel):
    """Body returned by the audit gateway."""

    status: AuditDecision
    advice: Optional[str] = None


@dataclass(frozen=True)
class Idle:
    status = ReplyStatus.IDLE


@dataclass(frozen=True)
class Auditing:
    text: str
    ticket: int
    status = ReplyStatus.AUDITING


@dataclass(frozen=True)
class Passed:
    """PASS verdict for text. reply is set when a send wrote the reply but did not resolve the session."""

    text: str
    reply: Optional[MessageRead] = None
    status = ReplyStatus.PASS


@dataclass(frozen=True)
class Blocked:
    text: str
    advice: str
    status = ReplyStatus.BLOCK


@dataclass(frozen=True)
class Sending:
    text: str
    status = ReplyStatus.SENDING


ReplyState = Union[Idle, Auditing, Passed, Blocked, Sending]


# -----------------------------------------------------------------------------
# API schemas
# -----------------------------------------------------------------------------


class DraftUpdate(BaseModel):
    text: str


class ReplyStateRead(BaseModel):
    """Operator-facing view of the reply composer."""

    session_id: Optional[str] = None
    status: ReplyStatus
    draft: str
    advice: Optional[str] = None
    can_audit: bool
    can_send: bool
    resolution_pending: bool = False


class SendReplyResult(BaseModel):
    success: bool
    message: MessageRead
