"""Rule selection for a bot profile."""

from botfleet.rules.models import AutoResponseRule, BotProfile, WebhookRule


def find_best_auto_response(profile: BotProfile, text: str) -> AutoResponseRule | None:
    """
    Pick the matching auto-response rule with the highest priority.

    Ties go to the rule declared first.
    """
    best: AutoResponseRule | None = None
    for rule in profile.auto_responses:
        if not rule.matches(text):
            continue
        if best is None or rule.priority > best.priority:
            best = rule
    return best


def find_matching_webhooks(profile: BotProfile, text: str) -> list[WebhookRule]:
    """All matching webhook rules, priority descending, ties in declaration order."""
    matching = [hook for hook in profile.webhooks if hook.matches(text)]
    # sorted() is stable, so equal priorities keep declaration order
    return sorted(matching, key=lambda hook: hook.priority, reverse=True)
