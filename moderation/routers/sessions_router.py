"""Sessions API: live roster and per-session message reads."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from moderation.core.console import ModerationConsole
from moderation.core.errors import ConfigurationError, StoreError
from moderation.routers.utils.dependencies import get_console
from moderation.schemas.message import MessageRead, SessionList, SessionSummary

sessions_router = APIRouter(prefix="/sessions", tags=["Session"])


@sessions_router.get("", response_model=SessionList)
async def list_sessions(
    console: ModerationConsole = Depends(get_console),
) -> SessionList:
    """List sessions: pending first, then most recent activity first."""
    return console.session_list()


@sessions_router.get("/{session_id}", response_model=SessionSummary)
async def get_session(
    session_id: str,
    console: ModerationConsole = Depends(get_console),
) -> SessionSummary:
    """Get the summary of one session."""
    if console.aggregator is None:
        raise HTTPException(status_code=503, detail="Message store is not configured")
    summary = console.aggregator.get(session_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return summary


@sessions_router.get("/{session_id}/messages", response_model=list[MessageRead])
async def list_session_messages(
    session_id: str,
    console: ModerationConsole = Depends(get_console),
) -> list[MessageRead]:
    """Read the messages of a session straight from the store, oldest first."""
    try:
        return await console.store.select(session_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except StoreError as e:
        raise HTTPException(status_code=502, detail="Failed to read messages") from e
