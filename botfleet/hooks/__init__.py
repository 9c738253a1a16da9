"""
Outbound webhooks for botfleet.

Pattern-triggered HTTP calls to external integrations.
"""

from botfleet.hooks.service import (
    WebhookDispatcher,
    WebhookResult,
    backoff_seconds,
)

__all__ = [
    "WebhookDispatcher",
    "WebhookResult",
    "backoff_seconds",
]
