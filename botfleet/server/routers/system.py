"""
System routes for the botfleet API.

Provides:
- /health - Lightweight health check
- /api/system/status - Fleet-wide status
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from botfleet import __version__
from botfleet.server.dependencies import CoordinatorDep

router = APIRouter()
health_router = APIRouter()


@health_router.get("/health")
async def health_check():
    """
    Lightweight health check.

    Returns simple OK status for load balancers and monitoring.
    """
    return JSONResponse({
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "botfleet",
    })


@router.get("/status")
async def get_status(coordinator: CoordinatorDep):
    """
    Get fleet status.

    Returns:
        - is_running: Whether the fleet is running
        - total_bots: Number of started bots
        - bots: Per-bot queue depth, delay and processing flag
        - queues / webhooks / cooldowns: Service statistics
        - version: botfleet version
    """
    status = coordinator.get_status()
    status["version"] = __version__
    return JSONResponse(status)
