"""Exception hierarchy for botfleet."""


class BotFleetError(Exception):
    """Base class for all botfleet errors."""


class ConfigurationError(BotFleetError):
    """Invalid bot, rule or settings configuration."""


class PatternError(ConfigurationError):
    """A rule pattern failed to compile."""

    def __init__(self, pattern: str, reason: str = ""):
        self.pattern = pattern
        self.reason = reason
        message = f"Invalid rule pattern: {pattern!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class QueueError(BotFleetError):
    """Outbound queue misuse (unknown bot, enqueue after shutdown)."""


class WebhookDeliveryError(BotFleetError):
    """A single webhook delivery attempt failed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ChannelError(BotFleetError):
    """Transport channel could not be created or used."""
