"""
Auto-reply pipeline for botfleet.

Provides:
- Per-sender cooldowns
- Reply rule selection
- Delayed, serialized outbound queue
"""

from botfleet.auto_reply.cooldown import CooldownTracker, RETENTION_SECONDS
from botfleet.auto_reply.matcher import AutoResponseMatcher
from botfleet.auto_reply.queue import (
    DispatchQueue,
    QueuedOutboundMessage,
    SendCallback,
)

__all__ = [
    # Cooldowns
    "CooldownTracker",
    "RETENTION_SECONDS",
    # Matching
    "AutoResponseMatcher",
    # Queue
    "DispatchQueue",
    "QueuedOutboundMessage",
    "SendCallback",
]
