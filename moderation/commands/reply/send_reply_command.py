"""
Command to send the selected session's audited reply.

The workflow inserts the human_agent reply and resolves the session's
pending messages; failures are reported with the step that failed.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException

from moderation.core.console import ModerationConsole
from moderation.core.errors import ConfigurationError, SendError, ValidationError
from moderation.schemas.reply import SendReplyResult


class SendReplyCommand:
    """Send the current draft if it holds a current PASS verdict."""

    def __init__(self, console: ModerationConsole) -> None:
        self.console = console
        self.logger = logging.getLogger(__name__)

    async def execute(self) -> dict[str, Any]:
        """
        Send the reply.

        Returns:
            dict: {"data": {"success": True, "message": <inserted reply>}}.

        Raises:
            HTTPException: 400 when the send is rejected (no session, empty
                draft, not audited), 503 if the store is not configured,
                502 if a step of the send failed.
        """
        try:
            reply = await self.console.workflow.send()
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except ConfigurationError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        except SendError as e:
            self.logger.error("Error sending message (%s step): %s", e.step, e)
            raise HTTPException(
                status_code=502,
                detail={
                    "step": e.step,
                    "message": e.detail,
                    "timed_out": e.timed_out,
                },
            ) from e
        result = SendReplyResult(success=True, message=reply)
        return {"data": result.model_dump(mode="json")}
