"""Schemas for the operator console view and system status."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from moderation.schemas.message import MessageRead
from moderation.schemas.reply import ReplyStateRead


class SessionSelect(BaseModel):
    """Select a session, or clear the selection with null."""

    session_id: Optional[str] = Field(default=None, min_length=1, max_length=255)


class ConsoleView(BaseModel):
    """Timeline of the selected session plus its reply composer."""

    session_id: Optional[str] = None
    loading: bool = False
    messages: list[MessageRead] = Field(default_factory=list)
    last_error: Optional[str] = None
    reply: ReplyStateRead


class SystemStatus(BaseModel):
    app: str
    environment: str
    store_configured: bool
    audit_configured: bool
    sessions_loaded: bool
    session_count: int
