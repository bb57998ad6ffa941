"""
Command to audit the selected session's draft reply.

Runs the reply workflow's audit and maps its failures to HTTP errors. A
BLOCK verdict is a normal result (status "block" with advice).
"""

from __future__ import annotations

import logging

from fastapi import HTTPException

from moderation.core.console import ModerationConsole
from moderation.core.errors import (
    AuditRequestError,
    AuditTimeoutError,
    ConfigurationError,
    ValidationError,
)
from moderation.schemas.reply import ReplyStateRead


class AuditDraftCommand:
    """Audit the current draft of the selected session."""

    def __init__(self, console: ModerationConsole) -> None:
        self.console = console
        self.logger = logging.getLogger(__name__)

    async def execute(self) -> ReplyStateRead:
        """
        Request an audit verdict for the current draft.

        Returns:
            ReplyStateRead: the composer state after the verdict (pass or block).

        Raises:
            HTTPException: 400 on an empty draft or an action already in flight,
                503 if the audit gateway or store is not configured,
                504 if the audit timed out, 502 if the audit request failed.
        """
        try:
            workflow = self.console.workflow
            await workflow.request_audit()
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except ConfigurationError as e:
            self.logger.warning("Audit unavailable: %s", e)
            raise HTTPException(status_code=503, detail=str(e)) from e
        except AuditTimeoutError as e:
            self.logger.warning("Audit timed out: %s", e)
            raise HTTPException(status_code=504, detail=str(e)) from e
        except AuditRequestError as e:
            self.logger.error("Error during audit: %s", e)
            raise HTTPException(
                status_code=502,
                detail="Failed to audit message. Please check the audit service configuration.",
            ) from e
        return workflow.snapshot()
