"""
Pytest configuration and shared fixtures for botfleet tests.
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from botfleet.rules.models import (  # noqa: E402
    AutoResponseRule,
    BotId,
    BotProfile,
    BotSettings,
    WebhookRule,
)
from botfleet.rules.pattern import RulePattern  # noqa: E402


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep stand-in that records requested delays and yields once."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


def make_auto(pattern: str, response: str = "reply", priority: int = 1, **kwargs) -> AutoResponseRule:
    case_insensitive = kwargs.pop("case_insensitive", False)
    return AutoResponseRule(
        pattern=RulePattern(pattern, case_insensitive),
        response=response,
        priority=priority,
        **kwargs,
    )


def make_webhook(name: str, pattern: str, url: str = "https://hooks.test/in", **kwargs) -> WebhookRule:
    case_insensitive = kwargs.pop("case_insensitive", True)
    return WebhookRule(
        name=name,
        pattern=RulePattern(pattern, case_insensitive),
        url=url,
        **kwargs,
    )


def make_profile(
    bot_id: str = "test-bot",
    auto_responses=(),
    webhooks=(),
    **settings,
) -> BotProfile:
    settings.setdefault("outbound_delay_ms", 0)
    return BotProfile(
        id=BotId(bot_id),
        name=f"Bot {bot_id}",
        settings=BotSettings(**settings),
        auto_responses=tuple(auto_responses),
        webhooks=tuple(webhooks),
    )


@pytest.fixture
def clock():
    """A fake monotonic clock."""
    return FakeClock()


@pytest.fixture
def recording_sleep():
    """A sleep function that records its arguments."""
    return RecordingSleep()


@pytest.fixture
def config_dir(tmp_path):
    """Create a temporary config directory."""
    config = tmp_path / "config"
    config.mkdir()
    return config
