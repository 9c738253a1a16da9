"""
FastAPI application factory for botfleet.

Provides:
- Application creation around an existing fleet coordinator
- Router registration
- Server runner for the CLI
"""

import contextlib
from typing import TYPE_CHECKING, Iterator

import uvicorn
from fastapi import FastAPI
from loguru import logger

from botfleet import __version__
from botfleet.server.routers import (
    bots_router,
    health_router,
    messages_router,
    system_router,
)

if TYPE_CHECKING:
    from botfleet.fleet.coordinator import FleetCoordinator


def create_app(coordinator: "FleetCoordinator") -> FastAPI:
    """
    Create and configure the FastAPI application.

    The coordinator's lifecycle belongs to the caller; the API only reads
    status and queues manual messages.

    Args:
        coordinator: Running (or about to run) fleet coordinator.

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="botfleet API",
        description="Status and queue introspection for a bot fleet",
        version=__version__,
    )

    app.state.coordinator = coordinator

    app.include_router(health_router, tags=["Health"])
    app.include_router(system_router, prefix="/api/system", tags=["System"])
    app.include_router(bots_router, prefix="/api/bots", tags=["Bots"])
    app.include_router(messages_router, prefix="/api/messages", tags=["Messages"])

    return app


class EmbeddedServer(uvicorn.Server):
    """
    uvicorn server that leaves signal handling to the caller.

    The fleet owns SIGINT/SIGTERM and sets ``should_exit`` once its own
    queues have drained.
    """

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


def create_server(
    coordinator: "FleetCoordinator",
    host: str = "127.0.0.1",
    port: int = 3000,
    log_level: str = "info",
) -> EmbeddedServer:
    """Build a uvicorn server for the API without starting it."""
    app = create_app(coordinator)
    config = uvicorn.Config(app, host=host, port=port, log_level=log_level)
    logger.info(f"API server configured on http://{host}:{port}")
    return EmbeddedServer(config)
