"""
Rule model for botfleet.

Provides:
- Compiled rule patterns
- Immutable bot profiles
- Auto-response and webhook rule selection
"""

from botfleet.rules.pattern import RulePattern
from botfleet.rules.models import (
    AutoResponseRule,
    BotId,
    BotProfile,
    BotSettings,
    HttpMethod,
    WebhookRule,
)
from botfleet.rules.matching import find_best_auto_response, find_matching_webhooks

__all__ = [
    "RulePattern",
    "AutoResponseRule",
    "BotId",
    "BotProfile",
    "BotSettings",
    "HttpMethod",
    "WebhookRule",
    "find_best_auto_response",
    "find_matching_webhooks",
]
