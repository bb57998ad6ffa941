"""
Console API: select a session, follow its timeline, compose, audit and send.

Audit is enabled while the draft is non-empty and nothing is in flight; send
only while the draft holds a current PASS verdict. Handlers are async so the
console is only touched from the event loop.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from moderation.commands.reply import AuditDraftCommand, SendReplyCommand
from moderation.core.console import ModerationConsole
from moderation.core.errors import ConfigurationError, ValidationError
from moderation.routers.utils.dependencies import get_console
from moderation.schemas.console import ConsoleView, SessionSelect
from moderation.schemas.reply import DraftUpdate, ReplyStateRead

router = APIRouter(prefix="/console", tags=["console"])


def _console_view(console: ModerationConsole) -> ConsoleView:
    timeline = console.timeline
    if timeline is None:
        raise HTTPException(status_code=503, detail="Message store is not configured")
    return ConsoleView(
        session_id=timeline.session_id,
        loading=timeline.loading,
        messages=list(timeline.messages),
        last_error=timeline.last_error,
        reply=console.workflow.snapshot(),
    )


@router.get("", response_model=ConsoleView)
async def get_console_view(
    console: ModerationConsole = Depends(get_console),
) -> ConsoleView:
    """Current selection, its live timeline and the reply composer."""
    return _console_view(console)


@router.post("/select", response_model=ConsoleView)
async def select_session(
    body: SessionSelect,
    console: ModerationConsole = Depends(get_console),
) -> ConsoleView:
    """Select a session (or clear the selection) and load its timeline."""
    try:
        await console.select_session(body.session_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return _console_view(console)


@router.put("/draft", response_model=ReplyStateRead)
async def update_draft(
    body: DraftUpdate,
    console: ModerationConsole = Depends(get_console),
) -> ReplyStateRead:
    """Replace the draft. Editing discards any previous audit verdict."""
    try:
        workflow = console.workflow
        workflow.update_draft(body.text)
    except ValidationError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return workflow.snapshot()


@router.post("/audit", response_model=ReplyStateRead)
async def audit_draft(
    console: ModerationConsole = Depends(get_console),
) -> ReplyStateRead:
    """Audit the current draft."""
    return await AuditDraftCommand(console).execute()


@router.post("/send", response_model=dict[str, Any])
async def send_reply(
    console: ModerationConsole = Depends(get_console),
) -> dict[str, Any]:
    """Send the audited draft and resolve the session's pending messages."""
    return await SendReplyCommand(console).execute()
