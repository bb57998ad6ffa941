"""Message model: one row per conversation turn, grouped by session_id."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from moderation.db import Base


class Message(Base):
    """
    One conversation turn from an end user, the assistant or a human agent.

    Every column except status is fixed at insert; status only moves
    pending_human -> resolved.
    """

    __tablename__ = "messages"

    __table_args__ = (
        Index("ix_messages_session_id_created_at", "session_id", "created_at"),
        Index("ix_messages_status", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    session_id = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False)  # 'user' | 'ai' | 'human_agent'
    content = Column(Text, nullable=False)
    status = Column(String(32), nullable=False)  # 'pending_human' | 'resolved'
    source = Column(String(32), nullable=False)  # 'web' | 'whatsapp'
