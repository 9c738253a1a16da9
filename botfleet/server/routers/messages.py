"""
Message routes for the botfleet API.

Provides:
- POST /api/messages/send - Queue a manual message
- /api/messages/queue - Status of every queue
- /api/messages/queue/{bot_id} - Status of one bot's queue
"""

from typing import Any

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from botfleet.errors import QueueError
from botfleet.server.dependencies import BotDep, CoordinatorDep

router = APIRouter()


class SendMessageRequest(BaseModel):
    """Body of a manual send."""
    bot_id: str = Field(min_length=1)
    to: str = Field(min_length=1)
    content: str = Field(min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SendMessageResponse(BaseModel):
    """Result of a manual send."""
    success: bool
    message_id: str
    bot_id: str
    queued: bool


@router.post("/send", response_model=SendMessageResponse)
async def send_message(body: SendMessageRequest, coordinator: CoordinatorDep):
    """Queue a message through the bot's delayed dispatch queue."""
    if coordinator.get_profile(body.bot_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": f"Bot with id '{body.bot_id}' not found"},
        )

    try:
        message_id = coordinator.send_message(body.bot_id, body.to, body.content, body.metadata)
    except QueueError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": str(e)},
        )

    return SendMessageResponse(
        success=True,
        message_id=message_id,
        bot_id=body.bot_id,
        queued=True,
    )


@router.get("/queue")
async def all_queues(coordinator: CoordinatorDep):
    """Status of every bot queue."""
    return coordinator.queue.get_all_status()


@router.get("/queue/{bot_id}")
async def bot_queue(profile: BotDep, coordinator: CoordinatorDep):
    """Status of one bot's queue."""
    return {
        "bot_id": profile.bot_id,
        "queue": coordinator.queue.get_bot_status(profile.bot_id),
    }
