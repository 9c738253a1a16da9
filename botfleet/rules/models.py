"""
Immutable bot profile and rule types.

Profiles are built once from validated configuration and never mutated
while the bot runs. Every invariant is checked on construction so a bad
profile fails before its bot starts.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from botfleet.errors import ConfigurationError
from botfleet.rules.pattern import RulePattern

_BOT_ID_RE = re.compile(r"^[a-z0-9-]+$")


class HttpMethod(str, Enum):
    """HTTP methods a webhook rule may use."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"


@dataclass(frozen=True)
class BotId:
    """Bot identifier: lowercase letters, digits and hyphens, 3+ chars."""
    value: str

    def __post_init__(self) -> None:
        if not self.value or len(self.value) < 3:
            raise ConfigurationError("Bot ID must be at least 3 characters long")
        if not _BOT_ID_RE.match(self.value):
            raise ConfigurationError(
                f"Bot ID {self.value!r} can only contain lowercase letters, numbers and hyphens"
            )

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class AutoResponseRule:
    """A pattern-to-reply mapping."""
    pattern: RulePattern
    response: str
    priority: int = 1
    cooldown: float | None = None  # seconds; None/0 = no throttling
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.priority < 0:
            raise ConfigurationError("Auto-response priority must be non-negative")
        if not self.response or not self.response.strip():
            raise ConfigurationError("Auto-response text cannot be empty")
        if self.cooldown is not None and self.cooldown < 0:
            raise ConfigurationError("Auto-response cooldown must be non-negative")

    def matches(self, text: str) -> bool:
        return self.pattern.matches(text)

    @property
    def cooldown_key(self) -> str:
        """Throttling key; disjoint from webhook keys."""
        return f"auto:{self.pattern.pattern}"

    @property
    def cooldown_ms(self) -> int:
        return int((self.cooldown or 0) * 1000)


@dataclass(frozen=True)
class WebhookRule:
    """A pattern-to-HTTP-call mapping."""
    name: str
    pattern: RulePattern
    url: str
    method: HttpMethod = HttpMethod.POST
    headers: dict[str, str] = field(default_factory=dict)
    timeout_ms: int = 5000
    max_retries: int = 3
    priority: int = 1
    cooldown: float | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ConfigurationError("Webhook name cannot be empty")
        if not self.url or not self.url.strip():
            raise ConfigurationError(f"Webhook {self.name!r}: URL cannot be empty")
        if self.priority < 0:
            raise ConfigurationError(f"Webhook {self.name!r}: priority must be non-negative")
        if self.timeout_ms <= 0:
            raise ConfigurationError(f"Webhook {self.name!r}: timeout must be positive")
        if self.max_retries < 1:
            raise ConfigurationError(f"Webhook {self.name!r}: retry count must be at least 1")
        if self.cooldown is not None and self.cooldown < 0:
            raise ConfigurationError(f"Webhook {self.name!r}: cooldown must be non-negative")
        if not isinstance(self.method, HttpMethod):
            try:
                object.__setattr__(self, "method", HttpMethod(str(self.method).upper()))
            except ValueError as e:
                raise ConfigurationError(
                    f"Webhook {self.name!r}: unsupported method {self.method!r}"
                ) from e

    def matches(self, text: str) -> bool:
        return self.pattern.matches(text)

    @property
    def cooldown_key(self) -> str:
        return f"webhook:{self.name}"

    @property
    def cooldown_ms(self) -> int:
        return int((self.cooldown or 0) * 1000)


@dataclass(frozen=True)
class BotSettings:
    """Behavioral settings for one bot."""
    ignore_groups: bool = True
    ignored_senders: frozenset[str] = frozenset()
    outbound_delay_ms: int = 1000
    # Provider hints, passed through untouched
    simulate_typing: bool = True
    typing_delay_ms: int = 1000
    read_receipts: bool = True
    admin_senders: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.outbound_delay_ms < 0:
            raise ConfigurationError("Queue delay must be non-negative")
        if self.typing_delay_ms < 0:
            raise ConfigurationError("Typing delay must be non-negative")
        object.__setattr__(self, "ignored_senders", frozenset(self.ignored_senders))
        object.__setattr__(self, "admin_senders", frozenset(self.admin_senders))

    def is_ignored_sender(self, sender: str) -> bool:
        return sender in self.ignored_senders


@dataclass(frozen=True)
class BotProfile:
    """Everything the pipeline needs to know about one bot."""
    id: BotId
    name: str
    settings: BotSettings = field(default_factory=BotSettings)
    auto_responses: tuple[AutoResponseRule, ...] = ()
    webhooks: tuple[WebhookRule, ...] = ()
    phone: str | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ConfigurationError(f"Bot {self.id}: name cannot be empty")
        object.__setattr__(self, "auto_responses", tuple(self.auto_responses))
        object.__setattr__(self, "webhooks", tuple(self.webhooks))

    @property
    def bot_id(self) -> str:
        return self.id.value

    def to_dict(self) -> dict[str, Any]:
        """Serializable summary for the status API."""
        return {
            "id": self.bot_id,
            "name": self.name,
            "phone": self.phone,
            "settings": {
                "ignore_groups": self.settings.ignore_groups,
                "ignored_senders": sorted(self.settings.ignored_senders),
                "outbound_delay_ms": self.settings.outbound_delay_ms,
                "simulate_typing": self.settings.simulate_typing,
                "typing_delay_ms": self.settings.typing_delay_ms,
                "read_receipts": self.settings.read_receipts,
            },
            "auto_responses": [
                {
                    "pattern": rule.pattern.pattern,
                    "case_insensitive": rule.pattern.case_insensitive,
                    "response": rule.response,
                    "priority": rule.priority,
                    "cooldown": rule.cooldown,
                }
                for rule in self.auto_responses
            ],
            "webhooks": [
                {
                    "name": hook.name,
                    "pattern": hook.pattern.pattern,
                    "url": hook.url,
                    "method": hook.method.value,
                    "timeout_ms": hook.timeout_ms,
                    "max_retries": hook.max_retries,
                    "priority": hook.priority,
                    "cooldown": hook.cooldown,
                }
                for hook in self.webhooks
            ],
        }
