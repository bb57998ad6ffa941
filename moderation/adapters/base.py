"""
Gateway interfaces consumed by the console core.

The message store and the audit service are external systems; the core
only depends on these contracts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from moderation.core.feed import Subscription
from moderation.schemas.message import MessageCreate, MessageRead, MessageStatus
from moderation.schemas.reply import AuditVerdict


class MessageStore(ABC):
    """Contract for the message log: ordered reads, writes and a change feed."""

    @abstractmethod
    async def select(self, session_id: Optional[str] = None) -> List[MessageRead]:
        """Messages of one session (or all), created_at ascending. Raise StoreError on failure."""
        ...

    @abstractmethod
    async def insert(self, data: MessageCreate) -> MessageRead:
        """Insert a message; the store assigns id and created_at. Raise StoreError on failure."""
        ...

    @abstractmethod
    async def update_status(
        self,
        session_id: str,
        from_status: MessageStatus,
        to_status: MessageStatus,
    ) -> List[MessageRead]:
        """Patch status on every message of the session currently at from_status."""
        ...

    @abstractmethod
    def subscribe(self, session_id: Optional[str] = None) -> Subscription:
        """Open a change subscription for one session, or all sessions when None."""
        ...


class AuditGateway(ABC):
    """Contract for the external content-audit decision service."""

    @abstractmethod
    async def audit(self, draft: str) -> AuditVerdict:
        """
        Return the PASS/BLOCK verdict for draft.

        Raise ConfigurationError when the gateway is not configured and
        AuditRequestError when no verdict could be obtained.
        """
        ...
