"""HTTP status API for botfleet."""

from botfleet.server.main import create_app, create_server

__all__ = ["create_app", "create_server"]
