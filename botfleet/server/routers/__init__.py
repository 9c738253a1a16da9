"""API routers for botfleet."""

from botfleet.server.routers.system import router as system_router
from botfleet.server.routers.system import health_router
from botfleet.server.routers.bots import router as bots_router
from botfleet.server.routers.messages import router as messages_router

__all__ = [
    "system_router",
    "health_router",
    "bots_router",
    "messages_router",
]
