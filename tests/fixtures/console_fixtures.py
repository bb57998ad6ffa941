"""Fixtures for the console, a stubbed audit gateway and the API client."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from moderation.adapters.base import AuditGateway
from moderation.config import Settings
from moderation.core.console import ModerationConsole
from moderation.main import create_app
from moderation.schemas.reply import AuditDecision, AuditVerdict


@pytest.fixture(scope="function")
def test_settings():
    return Settings(
        database_url="sqlite://",
        audit_url="http://audit.test/webhook/audit",
        audit_timeout_seconds=5,
        send_timeout_seconds=5,
    )


@pytest.fixture(scope="function")
def audit_gateway():
    """Audit gateway stub that passes every draft unless reconfigured."""
    gateway = MagicMock(spec=AuditGateway)
    gateway.audit = AsyncMock(return_value=AuditVerdict(status=AuditDecision.PASS))
    return gateway


@pytest.fixture(scope="function")
def console(store, audit_gateway, test_settings):
    return ModerationConsole(store, audit_gateway, settings=test_settings)


@pytest.fixture(scope="function")
def client(console):
    """Client running the app lifespan against the test console."""
    app = create_app(testing=True, console=console)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def wait_until():
    """Poll a predicate on the running loop until it holds."""

    async def _wait_until(predicate, timeout=2.0, interval=0.01):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not met within timeout")
            await asyncio.sleep(interval)

    return _wait_until


@pytest.fixture(scope="function")
def client_factory(console):
    """Build a client on demand, after the test has seeded the store."""

    def _client() -> TestClient:
        return TestClient(create_app(testing=True, console=console))

    return _client
