from fastapi import HTTPException, Request

from moderation.core.console import ModerationConsole


async def get_console(request: Request) -> ModerationConsole:
    """FastAPI dependency returning the console started by the app lifespan."""
    console = getattr(request.app.state, "console", None)
    if console is None:
        raise HTTPException(status_code=503, detail="Console is not running")
    return console
