"""
Error taxonomy for the moderation console.

Background synchronisation absorbs TransportError (log and keep the stale
view); foreground actions (audit, send) let these propagate to the caller.
An audit BLOCK verdict is not an error: it is the Blocked reply state.
"""

from __future__ import annotations

from typing import Optional


class ConsoleError(Exception):
    """Base class for moderation console errors."""


class ConfigurationError(ConsoleError):
    """A gateway endpoint or credential is missing or invalid."""


class ValidationError(ConsoleError):
    """An operator action was rejected before reaching any gateway."""


class TransportError(ConsoleError):
    """A read, write, subscribe or audit request failed in transit."""


class StoreError(TransportError):
    """The message store rejected or failed a read or write."""


class AuditRequestError(TransportError):
    """The audit request did not produce a verdict (network, non-2xx, bad body)."""


class AuditTimeoutError(AuditRequestError):
    """The audit gateway did not answer within the configured timeout."""


class SendError(TransportError):
    """
    One step of the send transaction failed.

    step is "insert" (reply row not written) or "resolve" (reply written,
    pending messages not resolved). timed_out means the outcome of the step
    is unknown.
    """

    def __init__(
        self, step: str, detail: str, timed_out: bool = False, cause: Optional[Exception] = None
    ) -> None:
        super().__init__(detail)
        self.step = step
        self.detail = detail
        self.timed_out = timed_out
        self.cause = cause
