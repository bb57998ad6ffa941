"""Gateways to the message store and the content-audit service."""

from moderation.adapters.base import AuditGateway, MessageStore
from moderation.adapters.http_audit import HttpAuditGateway
from moderation.adapters.sql_store import SqlMessageStore

__all__ = ["AuditGateway", "HttpAuditGateway", "MessageStore", "SqlMessageStore"]
