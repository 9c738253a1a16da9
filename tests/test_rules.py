"""
Tests for rule patterns, bot profiles and rule selection.
"""

import pytest

from botfleet.errors import ConfigurationError, PatternError
from botfleet.rules.matching import find_best_auto_response, find_matching_webhooks
from botfleet.rules.models import (
    AutoResponseRule,
    BotId,
    BotProfile,
    BotSettings,
    HttpMethod,
    WebhookRule,
)
from botfleet.rules.pattern import RulePattern

from conftest import make_auto, make_profile, make_webhook


class TestRulePattern:
    """RulePattern compiles once and matches with search semantics."""

    def test_matches_anywhere_in_text(self):
        pattern = RulePattern("hello")
        assert pattern.matches("well hello there")
        assert not pattern.matches("goodbye")

    def test_case_sensitive_by_default(self):
        pattern = RulePattern("Hello")
        assert pattern.matches("Hello")
        assert not pattern.matches("hello")
        assert pattern.case_insensitive is False

    def test_case_insensitive(self):
        pattern = RulePattern("hello", case_insensitive=True)
        assert pattern.matches("HELLO world")
        assert pattern.case_insensitive is True

    def test_anchored_pattern(self):
        pattern = RulePattern(r"^order \d+$")
        assert pattern.matches("order 123")
        assert not pattern.matches("my order 123")

    def test_invalid_pattern_fails_at_construction(self):
        with pytest.raises(PatternError) as exc_info:
            RulePattern("([unclosed")
        assert exc_info.value.pattern == "([unclosed"

    def test_pattern_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            RulePattern("*oops")

    def test_empty_pattern_rejected(self):
        with pytest.raises(PatternError):
            RulePattern("")


class TestBotId:
    """BotId charset and length rules."""

    @pytest.mark.parametrize("value", ["abc", "support-bot", "bot-01"])
    def test_valid_ids(self, value):
        assert BotId(value).value == value
        assert str(BotId(value)) == value

    @pytest.mark.parametrize("value", ["", "ab", "Support", "bot_1", "bot 1", "bót"])
    def test_invalid_ids(self, value):
        with pytest.raises(ConfigurationError):
            BotId(value)

    def test_ids_compare_by_value(self):
        assert BotId("abc") == BotId("abc")


class TestRuleValidation:
    """Rules fail fast on construction."""

    def test_negative_priority_rejected(self):
        with pytest.raises(ConfigurationError):
            make_auto("hi", priority=-1)

    def test_blank_response_rejected(self):
        with pytest.raises(ConfigurationError):
            make_auto("hi", response="   ")

    def test_cooldown_properties(self):
        rule = make_auto("hi", cooldown=30)
        assert rule.cooldown_ms == 30000
        assert make_auto("hi").cooldown_ms == 0

    def test_auto_and_webhook_keys_are_disjoint(self):
        auto = make_auto("ping")
        hook = make_webhook("ping", "ping")
        assert auto.cooldown_key != hook.cooldown_key

    def test_webhook_defaults(self):
        hook = make_webhook("orders", "order")
        assert hook.method == HttpMethod.POST
        assert hook.timeout_ms == 5000
        assert hook.max_retries == 3
        assert hook.priority == 1
        assert hook.cooldown is None
        assert hook.headers == {}

    def test_webhook_method_string_is_normalized(self):
        hook = make_webhook("orders", "order", method="put")
        assert hook.method == HttpMethod.PUT

    def test_webhook_unsupported_method(self):
        with pytest.raises(ConfigurationError):
            make_webhook("orders", "order", method="DELETE")

    @pytest.mark.parametrize("kwargs", [
        {"name": ""},
        {"url": ""},
        {"priority": -1},
        {"max_retries": 0},
        {"timeout_ms": 0},
    ])
    def test_webhook_invalid_fields(self, kwargs):
        values = {
            "name": "orders",
            "pattern": RulePattern("order"),
            "url": "https://hooks.test",
        }
        values.update(kwargs)
        with pytest.raises(ConfigurationError):
            WebhookRule(**values)

    def test_negative_delay_rejected(self):
        with pytest.raises(ConfigurationError):
            BotSettings(outbound_delay_ms=-1)

    def test_blank_bot_name_rejected(self):
        with pytest.raises(ConfigurationError):
            BotProfile(id=BotId("abc"), name=" ")

    def test_profile_is_immutable(self):
        profile = make_profile()
        with pytest.raises(AttributeError):
            profile.name = "other"


class TestFindBestAutoResponse:
    """Highest priority wins, ties go to the first declared rule."""

    def test_no_rules(self):
        assert find_best_auto_response(make_profile(), "hello") is None

    def test_no_match(self):
        profile = make_profile(auto_responses=[make_auto("hello")])
        assert find_best_auto_response(profile, "bye") is None

    def test_highest_priority_wins(self):
        low = make_auto("hel", response="low", priority=1)
        high = make_auto("hello", response="high", priority=5)
        mid = make_auto("llo", response="mid", priority=3)
        profile = make_profile(auto_responses=[low, high, mid])
        assert find_best_auto_response(profile, "hello") is high

    def test_non_matching_high_priority_ignored(self):
        high = make_auto("price", response="high", priority=10)
        low = make_auto("hello", response="low", priority=1)
        profile = make_profile(auto_responses=[high, low])
        assert find_best_auto_response(profile, "hello") is low

    def test_tie_goes_to_first_declared(self):
        first = make_auto("hello", response="first", priority=2)
        second = make_auto("hell", response="second", priority=2)
        profile = make_profile(auto_responses=[first, second])
        assert find_best_auto_response(profile, "hello") is first

        reversed_profile = make_profile(auto_responses=[second, first])
        assert find_best_auto_response(reversed_profile, "hello") is second


class TestFindMatchingWebhooks:
    """All matches, priority descending, stable on ties."""

    def test_sorted_by_priority_descending(self):
        p5 = make_webhook("p5", "order", priority=5)
        p10 = make_webhook("p10", r"order \d+", priority=10)
        profile = make_profile(webhooks=[p5, p10])
        assert find_matching_webhooks(profile, "order 123") == [p10, p5]

    def test_ties_keep_declaration_order(self):
        a = make_webhook("a", "order", priority=1)
        b = make_webhook("b", "order", priority=3)
        c = make_webhook("c", "order", priority=1)
        profile = make_profile(webhooks=[a, b, c])
        assert [h.name for h in find_matching_webhooks(profile, "order")] == ["b", "a", "c"]

    def test_only_matches_returned(self):
        a = make_webhook("a", "order")
        b = make_webhook("b", "refund")
        profile = make_profile(webhooks=[a, b])
        assert find_matching_webhooks(profile, "ORDER please") == [a]
        assert find_matching_webhooks(profile, "nothing") == []
