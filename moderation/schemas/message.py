"""Pydantic schemas for messages, change events and derived session summaries."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class MessageRole(str, Enum):
    """Producer of a message."""

    USER = "user"
    AI = "ai"
    HUMAN_AGENT = "human_agent"


class MessageStatus(str, Enum):
    """Whether a message is waiting for a human reply."""

    PENDING_HUMAN = "pending_human"
    RESOLVED = "resolved"


class MessageSource(str, Enum):
    """Channel the conversation came in on."""

    WEB = "web"
    WHATSAPP = "whatsapp"


# Forward-only status transitions
STATUS_TRANSITIONS: dict[MessageStatus, frozenset[MessageStatus]] = {
    MessageStatus.PENDING_HUMAN: frozenset({MessageStatus.RESOLVED}),
    MessageStatus.RESOLVED: frozenset(),
}


def is_allowed_transition(current: MessageStatus, new: MessageStatus) -> bool:
    return new in STATUS_TRANSITIONS[MessageStatus(current)]


def _as_utc(value: datetime) -> datetime:
    # SQLite (and DateTime without timezone) hands back naive values stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# -----------------------------------------------------------------------------
# Message schemas
# -----------------------------------------------------------------------------


class MessageBase(BaseModel):
    """Fields supplied by the producer of a message."""

    session_id: str = Field(min_length=1, max_length=255)
    role: MessageRole
    content: str
    status: MessageStatus = MessageStatus.RESOLVED
    source: MessageSource = MessageSource.WEB


class MessageCreate(MessageBase):
    """Schema for inserting a message; id and created_at come from the store."""

    pass


class MessageIngest(MessageBase):
    """Schema for messages ingested from channels or the assistant."""

    @field_validator("role")
    @classmethod
    def reject_human_agent(cls, value: MessageRole) -> MessageRole:
        if value == MessageRole.HUMAN_AGENT:
            raise ValueError(
                "human_agent replies must be sent through the reply workflow"
            )
        return value


class MessageRead(MessageBase):
    """A stored message."""

    id: int
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, value: datetime) -> datetime:
        return _as_utc(value)


# -----------------------------------------------------------------------------
# Change feed events
# -----------------------------------------------------------------------------


class MessageEventType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"


class MessageEvent(BaseModel):
    """Row-level change pushed by the store after a committed write."""

    type: MessageEventType
    new: MessageRead

    model_config = {"frozen": True}


# -----------------------------------------------------------------------------
# Session summaries (derived, never persisted)
# -----------------------------------------------------------------------------


class SessionSummary(BaseModel):
    """Projection of every known message of one session."""

    session_id: str
    latest_message: str
    latest_timestamp: datetime
    latest_message_id: Optional[int] = None
    has_pending: bool
    source: MessageSource
    message_count: int

    model_config = {"frozen": True}


class SessionList(BaseModel):
    """Session roster for the operator; configured is False without a store."""

    configured: bool
    loaded: bool
    items: list[SessionSummary] = Field(default_factory=list)
