"""Fleet lifecycle for botfleet."""

from botfleet.fleet.coordinator import FleetCoordinator, InboundOutcome, SkipReason

__all__ = [
    "FleetCoordinator",
    "InboundOutcome",
    "SkipReason",
]
