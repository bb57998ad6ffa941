"""Message CRUD, ordered reads and forward-only status updates."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Query, Session as DBSession

from moderation.core.errors import ValidationError
from moderation.models.message import Message
from moderation.schemas.message import (
    MessageCreate,
    MessageStatus,
    is_allowed_transition,
)


class MessageService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def create_message(self, data: MessageCreate) -> Message:
        msg = Message(**data.model_dump(mode="json"))
        self.db.add(msg)
        self.db.commit()
        self.db.refresh(msg)
        return msg

    def get_messages_query(self, session_id: Optional[str] = None) -> Query[Message]:
        """Messages ordered by created_at ascending; id breaks ties."""
        query = self.db.query(Message)
        if session_id is not None:
            query = query.filter(Message.session_id == session_id)
        return query.order_by(Message.created_at.asc(), Message.id.asc())

    def get_messages(self, session_id: Optional[str] = None) -> List[Message]:
        return self.get_messages_query(session_id).all()

    def update_status(
        self,
        session_id: str,
        from_status: MessageStatus,
        to_status: MessageStatus,
    ) -> List[Message]:
        """
        Move every message of the session at from_status to to_status.

        Returns the updated rows. Raises ValidationError for any transition
        other than pending_human -> resolved.
        """
        if not is_allowed_transition(from_status, to_status):
            raise ValidationError(
                f"Status cannot move from {MessageStatus(from_status).value} "
                f"to {MessageStatus(to_status).value}"
            )
        rows = (
            self.get_messages_query(session_id)
            .filter(Message.status == MessageStatus(from_status).value)
            .all()
        )
        for row in rows:
            row.status = MessageStatus(to_status).value
        self.db.commit()
        for row in rows:
            self.db.refresh(row)
        return rows
