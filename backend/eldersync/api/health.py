"""
Health API endpoints - service status for monitoring.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from ..services.context import AppContext
from .deps import get_context

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(context: AppContext = Depends(get_context)):
    """Service status."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": context.settings.app_version,
        "storage": context.settings.storage_backend,
        "services": {
            "auth": "/auth",
            "patients": "/patients",
            "iot": "/iot",
        },
    }


@router.get("/ping", response_class=PlainTextResponse)
async def ping():
    """Simple availability check."""
    return "pong"
