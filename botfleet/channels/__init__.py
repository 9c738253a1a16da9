"""Chat transport channels for botfleet."""

from botfleet.channels.base import BaseChannel, ChannelObserver, InboundMessage
from botfleet.channels.memory import MemoryChannel
from botfleet.channels.manager import ChannelFactory, ChannelManager

__all__ = [
    "BaseChannel",
    "ChannelObserver",
    "InboundMessage",
    "MemoryChannel",
    "ChannelFactory",
    "ChannelManager",
]
