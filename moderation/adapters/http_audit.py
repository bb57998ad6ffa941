"""HTTP client for the external content-audit service."""

from __future__ import annotations

import asyncio
from typing import Optional

import requests
from pydantic import ValidationError

from moderation.adapters.base import AuditGateway
from moderation.core.errors import AuditRequestError, ConfigurationError
from moderation.infra.logging_config import get_logger
from moderation.schemas.reply import AuditVerdict

logger = get_logger("http_audit")

DEFAULT_CHANNEL = "web"
TIMEOUT_SECONDS = 30


class HttpAuditGateway(AuditGateway):
    """
    POSTs {draft, channel} to the audit URL and parses {status, advice?}.

    Anything other than a 2xx response with a valid verdict body is a
    request failure, never a BLOCK.
    """

    def __init__(
        self,
        url: Optional[str],
        channel: str = DEFAULT_CHANNEL,
        timeout_seconds: float = TIMEOUT_SECONDS,
    ) -> None:
        self._url = url
        self._channel = channel
        self._timeout_seconds = timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self._url)

    async def audit(self, draft: str) -> AuditVerdict:
        if not self._url:
            raise ConfigurationError("Audit URL is not configured")
        return await asyncio.to_thread(self._post, draft)

    def _post(self, draft: str) -> AuditVerdict:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        payload = {"draft": draft, "channel": self._channel}
        logger.info("Requesting audit from %s (%d chars)", self._url, len(draft))

        try:
            resp = requests.post(
                self._url,
                json=payload,
                headers=headers,
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as e:
            raise AuditRequestError(f"Audit request failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise AuditRequestError(
                f"HTTP {resp.status_code}: {resp.text[:500] if resp.text else 'no body'}"
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise AuditRequestError(f"Invalid JSON: {e}") from e

        try:
            verdict = AuditVerdict.model_validate(data)
        except ValidationError as e:
            raise AuditRequestError(f"Invalid audit response: {e}") from e

        logger.info("Audit verdict: %s", verdict.status.value)
        return verdict
