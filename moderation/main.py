"""Application factory for the moderation console API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from moderation.config import get_settings
from moderation.core.console import ModerationConsole, build_console
from moderation.infra.logging_config import LoggingConfig, get_logger
from moderation.routers import console_router, messages_router, system
from moderation.routers.sessions_router import sessions_router

logger = get_logger("main")


def create_app(
    testing: bool = False, console: Optional[ModerationConsole] = None
) -> FastAPI:
    """
    Build the FastAPI app.

    The console (store, feed, aggregator) is started by the lifespan; pass
    one in to run against a prepared store. testing skips logging setup.
    """
    settings = get_settings()
    if not testing:
        LoggingConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.console = console or build_console(settings)
        await app.state.console.start()
        logger.info("Moderation console started (%s)", settings.environment)
        try:
            yield
        finally:
            await app.state.console.stop()
            app.state.console = None

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(sessions_router)
    app.include_router(messages_router.router)
    app.include_router(console_router.router)
    app.include_router(system.router)
    return app
