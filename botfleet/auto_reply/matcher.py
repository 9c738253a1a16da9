"""
Auto-response selection with cooldowns.
"""

from loguru import logger

from botfleet.auto_reply.cooldown import CooldownTracker
from botfleet.channels.base import InboundMessage
from botfleet.rules.matching import find_best_auto_response
from botfleet.rules.models import AutoResponseRule, BotProfile


class AutoResponseMatcher:
    """Selects at most one reply rule per inbound message."""

    def __init__(self, cooldowns: CooldownTracker):
        self.cooldowns = cooldowns

    def match(self, profile: BotProfile, message: InboundMessage) -> AutoResponseRule | None:
        """
        Find the reply rule for a message.

        The best matching rule is chosen first; if it is on cooldown for
        this sender the message gets no reply. Lower-priority rules are
        not tried as a fallback.

        Returns:
            The rule to answer with, or None.
        """
        rule = find_best_auto_response(profile, message.content)
        if rule is None:
            return None

        if not self.cooldowns.try_acquire(message.sender, rule.cooldown_key, rule.cooldown_ms):
            logger.debug(
                f"Cooldown active for {message.sender} on pattern "
                f"{rule.pattern.pattern!r} in bot {profile.bot_id}"
            )
            return None

        logger.info(
            f"Auto-response triggered for bot {profile.bot_id}: "
            f"{rule.pattern.pattern!r} -> {rule.response[:50]!r}"
        )
        return rule
