"""
Bot routes for the botfleet API.

Provides:
- /api/bots - List running bots
- /api/bots/{bot_id} - Bot details with rules and queue status
"""

from fastapi import APIRouter

from botfleet.server.dependencies import BotDep, CoordinatorDep

router = APIRouter()


@router.get("")
async def list_bots(coordinator: CoordinatorDep):
    """List running bots with rule counts."""
    bots = [
        {
            "id": profile.bot_id,
            "name": profile.name,
            "phone": profile.phone,
            "auto_responses_count": len(profile.auto_responses),
            "webhooks_count": len(profile.webhooks),
        }
        for profile in coordinator.profiles.values()
    ]
    return {"bots": bots, "total": len(bots)}


@router.get("/{bot_id}")
async def get_bot(profile: BotDep, coordinator: CoordinatorDep):
    """Full bot profile plus live queue status."""
    data = profile.to_dict()
    data["status"] = coordinator.get_bot_status(profile.bot_id)
    return data
