from fastapi import APIRouter, Depends

from moderation.config import get_settings
from moderation.core.console import ModerationConsole
from moderation.routers.utils.dependencies import get_console
from moderation.schemas.console import SystemStatus

router = APIRouter(
    prefix="/system",
    tags=["system"],
    responses={404: {"description": "Not found"}},
)


@router.get("/status", response_model=SystemStatus)
async def get_system_status(
    console: ModerationConsole = Depends(get_console),
) -> SystemStatus:
    """Report which gateways are configured, without exposing credentials."""
    s = get_settings()
    sessions = console.session_list()
    return SystemStatus(
        app=s.app_name,
        environment=s.environment,
        store_configured=console.configured,
        audit_configured=s.is_audit_configured,
        sessions_loaded=sessions.loaded,
        session_count=len(sessions.items),
    )
