"""
ModerationConsole: the session roster, the selected session's timeline and
its reply workflow.

The parts never call each other. A sent reply is a store write, and the
aggregator and timeline pick it up from the change feed like any other.
"""

from __future__ import annotations

from typing import Optional

from moderation.adapters.base import AuditGateway, MessageStore
from moderation.adapters.http_audit import HttpAuditGateway
from moderation.adapters.sql_store import SqlMessageStore
from moderation.config import Settings, get_settings
from moderation.core.errors import ConfigurationError
from moderation.db import DatabaseManager
from moderation.infra.logging_config import get_logger
from moderation.schemas.message import SessionList
from moderation.services.reply_workflow import ReplyWorkflow
from moderation.services.session_aggregator import SessionAggregator
from moderation.services.session_timeline import SessionTimeline

logger = get_logger("console")

STORE_NOT_CONFIGURED = "Message store is not configured"


class ModerationConsole:
    def __init__(
        self,
        store: Optional[MessageStore],
        audit_gateway: AuditGateway,
        settings: Optional[Settings] = None,
        database: Optional[DatabaseManager] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._audit_gateway = audit_gateway
        self._database = database
        self.aggregator: Optional[SessionAggregator] = (
            SessionAggregator(store) if store is not None else None
        )
        self.timeline: Optional[SessionTimeline] = (
            SessionTimeline(store) if store is not None else None
        )
        self._workflow: Optional[ReplyWorkflow] = None
        self._started = False

    @property
    def configured(self) -> bool:
        return self._store is not None

    @property
    def store(self) -> MessageStore:
        if self._store is None:
            raise ConfigurationError(STORE_NOT_CONFIGURED)
        return self._store

    @property
    def selected_session_id(self) -> Optional[str]:
        return self.timeline.session_id if self.timeline is not None else None

    @property
    def workflow(self) -> ReplyWorkflow:
        """Reply workflow of the selected session (unscoped when none is selected)."""
        if self._workflow is None:
            self._workflow = self._new_workflow(None)
        return self._workflow

    async def start(self) -> None:
        if self._started:
            return
        if self.aggregator is None:
            logger.warning("%s; console running without sessions", STORE_NOT_CONFIGURED)
        else:
            await self.aggregator.start()
        self._started = True

    async def stop(self) -> None:
        if self.timeline is not None:
            await self.timeline.deactivate()
        if self.aggregator is not None:
            await self.aggregator.stop()
        if self._database is not None:
            self._database.dispose()
        self._started = False

    async def select_session(self, session_id: Optional[str]) -> None:
        """Scope the timeline and a fresh reply workflow to session_id (or none)."""
        if self.timeline is None:
            raise ConfigurationError(STORE_NOT_CONFIGURED)
        if session_id == self.timeline.session_id and self._workflow is not None:
            # Same session keeps its draft; only a failed load is retried
            if session_id is not None and self.timeline.last_error is not None:
                await self.timeline.activate(session_id)
            return
        self._workflow = self._new_workflow(session_id)
        await self.timeline.activate(session_id)
        logger.info("Selected session %s", session_id)

    def session_list(self) -> SessionList:
        if self.aggregator is None:
            return SessionList(configured=False, loaded=False, items=[])
        return SessionList(
            configured=True,
            loaded=self.aggregator.loaded,
            items=list(self.aggregator.sessions),
        )

    def _new_workflow(self, session_id: Optional[str]) -> ReplyWorkflow:
        if self._store is None:
            raise ConfigurationError(STORE_NOT_CONFIGURED)
        return ReplyWorkflow(
            session_id=session_id,
            store=self._store,
            audit_gateway=self._audit_gateway,
            audit_timeout=self._settings.audit_timeout_seconds,
            send_timeout=self._settings.send_timeout_seconds,
        )


def build_console(settings: Optional[Settings] = None) -> ModerationConsole:
    """Wire the SQL store and HTTP audit gateway from settings."""
    settings = settings or get_settings()
    audit_gateway = HttpAuditGateway(
        url=settings.audit_url if settings.is_audit_configured else None,
        channel=settings.audit_channel,
        timeout_seconds=settings.audit_timeout_seconds,
    )
    if not settings.audit_url:
        logger.warning("AUDIT_URL is not set; audits will fail until it is configured")
    elif not settings.is_audit_configured:
        logger.warning("AUDIT_URL is not a valid http(s) URL; audits will fail")

    if not settings.is_store_configured:
        logger.warning("DATABASE_URL is missing or a placeholder; %s", STORE_NOT_CONFIGURED)
        return ModerationConsole(None, audit_gateway, settings=settings)

    database = DatabaseManager(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    store = SqlMessageStore(database.session_factory)
    return ModerationConsole(store, audit_gateway, settings=settings, database=database)
