"""
FastAPI dependency injection utilities.

Provides dependencies for:
- Fleet coordinator access
- Bot lookup
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from botfleet.fleet.coordinator import FleetCoordinator
from botfleet.rules.models import BotProfile


def get_coordinator(request: Request) -> FleetCoordinator:
    """Get the fleet coordinator from app state."""
    return request.app.state.coordinator


CoordinatorDep = Annotated[FleetCoordinator, Depends(get_coordinator)]


def require_bot(bot_id: str, coordinator: CoordinatorDep) -> BotProfile:
    """Dependency that resolves a path bot id or answers 404."""
    profile = coordinator.get_profile(bot_id)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": f"Bot with id '{bot_id}' not found"},
        )
    return profile


BotDep = Annotated[BotProfile, Depends(require_bot)]
