"""
Ingestion API for conversation turns from channels and the assistant.

Human agent replies are not accepted here; they go through the audited
reply workflow.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from moderation.core.console import ModerationConsole
from moderation.core.errors import ConfigurationError, StoreError
from moderation.routers.utils.dependencies import get_console
from moderation.schemas.message import MessageCreate, MessageIngest, MessageRead

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=MessageRead, status_code=201)
async def ingest_message(
    body: MessageIngest,
    console: ModerationConsole = Depends(get_console),
) -> MessageRead:
    """Store a user or assistant message; the change feed updates the console."""
    try:
        store = console.store
        return await store.insert(MessageCreate(**body.model_dump()))
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except StoreError as e:
        logger.error("Failed to ingest message for session %s: %s", body.session_id, e)
        raise HTTPException(status_code=502, detail="Failed to store message") from e
