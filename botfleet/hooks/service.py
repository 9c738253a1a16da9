"""
Webhook dispatcher for botfleet.

Fires outbound HTTP calls for webhook rules matching an inbound message:
- Cooldown per (sender, webhook)
- Concurrent delivery across rules
- Retry with exponential backoff
"""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx
from loguru import logger

from botfleet.auto_reply.cooldown import CooldownTracker
from botfleet.channels.base import InboundMessage
from botfleet.errors import WebhookDeliveryError
from botfleet.rules.matching import find_matching_webhooks
from botfleet.rules.models import BotProfile, HttpMethod, WebhookRule


@dataclass
class WebhookResult:
    """Outcome of one webhook rule for one message."""
    webhook_name: str
    bot_id: str
    success: bool
    attempts: int = 0
    status_code: int | None = None
    error: str = ""
    throttled: bool = False
    duration_ms: float = 0.0


def backoff_seconds(attempt: int) -> float:
    """Wait after failed attempt ``attempt`` (1-based): 1s, 2s, 4s, ..."""
    return float(2 ** (attempt - 1))


class WebhookDispatcher:
    """
    Delivers webhook rules over HTTP.

    One failing webhook never affects another, the auto-response path,
    or the bot. Failures end up in the log and in the returned results.
    """

    def __init__(
        self,
        cooldowns: CooldownTracker,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.cooldowns = cooldowns
        self._client = client or httpx.AsyncClient()
        self._sleep = sleep
        self._tasks: set[asyncio.Task] = set()

        # Stats
        self._trigger_count = 0
        self._success_count = 0
        self._error_count = 0
        self._throttled_count = 0

    def select(
        self,
        profile: BotProfile,
        message: InboundMessage,
        cooldowns: CooldownTracker | None = None,
    ) -> tuple[list[WebhookRule], list[WebhookRule]]:
        """
        Split matching webhooks into (to fire, throttled).

        Cooldowns for the rules to fire are recorded here, before any
        request goes out, so a burst of messages cannot fire duplicates
        while a slow request is in flight.

        Args:
            profile: Bot the message arrived at.
            message: Inbound message.
            cooldowns: Tracker to use instead of the dispatcher default.
        """
        tracker = cooldowns or self.cooldowns
        fire: list[WebhookRule] = []
        throttled: list[WebhookRule] = []

        for rule in find_matching_webhooks(profile, message.content):
            if tracker.try_acquire(message.sender, rule.cooldown_key, rule.cooldown_ms):
                fire.append(rule)
            else:
                throttled.append(rule)
                self._throttled_count += 1
                logger.debug(
                    f"Webhook cooldown active for {message.sender} on "
                    f"{rule.name!r} in bot {profile.bot_id}"
                )
        return fire, throttled

    async def dispatch(
        self,
        profile: BotProfile,
        message: InboundMessage,
        cooldowns: CooldownTracker | None = None,
    ) -> list[WebhookResult]:
        """
        Trigger every matching webhook for a message.

        Returns:
            One result per matching rule: delivered ones in priority
            order, then throttled ones.
        """
        fire, throttled = self.select(profile, message, cooldowns)
        return await self._deliver_all(profile, message, fire, throttled)

    def dispatch_in_background(
        self,
        profile: BotProfile,
        message: InboundMessage,
        cooldowns: CooldownTracker | None = None,
    ) -> asyncio.Task | None:
        """
        Fire-and-forget variant of dispatch().

        Rule selection and cooldowns happen immediately; delivery runs as a
        tracked task so shutdown can wait for it.

        Returns:
            The delivery task, or None if no webhook needs delivering.
        """
        fire, throttled = self.select(profile, message, cooldowns)
        if not fire:
            return None

        task = asyncio.get_running_loop().create_task(
            self._deliver_all(profile, message, fire, throttled),
            name=f"webhooks:{profile.bot_id}:{message.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver_all(
        self,
        profile: BotProfile,
        message: InboundMessage,
        fire: list[WebhookRule],
        throttled: list[WebhookRule],
    ) -> list[WebhookResult]:
        results = await asyncio.gather(
            *(self._trigger(profile, message, rule) for rule in fire)
        )
        skipped = [
            WebhookResult(webhook_name=rule.name, bot_id=profile.bot_id, success=False, throttled=True)
            for rule in throttled
        ]
        return list(results) + skipped

    async def _trigger(
        self,
        profile: BotProfile,
        message: InboundMessage,
        rule: WebhookRule,
    ) -> WebhookResult:
        """Deliver one webhook. Never raises."""
        self._trigger_count += 1
        start = time.time()
        logger.info(
            f"Triggering webhook {rule.name!r} for bot {profile.bot_id}: "
            f"{rule.method.value} {rule.url}"
        )

        # Serialized once; transport metadata may hold datetimes and the like
        body = json.dumps(self.build_payload(profile, message, rule), default=str)
        attempts = 0
        last_error = ""
        status_code: int | None = None

        for attempt in range(1, rule.max_retries + 1):
            attempts = attempt
            try:
                status_code = await self._send_request(rule, body)
                self._success_count += 1
                logger.info(f"Webhook {rule.name!r} delivered: {rule.url} ({status_code})")
                return WebhookResult(
                    webhook_name=rule.name,
                    bot_id=profile.bot_id,
                    success=True,
                    attempts=attempts,
                    status_code=status_code,
                    duration_ms=(time.time() - start) * 1000,
                )
            except Exception as e:
                last_error = str(e) or type(e).__name__
                status_code = getattr(e, "status_code", None)

            if attempt < rule.max_retries:
                wait = backoff_seconds(attempt)
                logger.warning(
                    f"Webhook {rule.name!r} failed (attempt {attempt}/{rule.max_retries}), "
                    f"retrying in {wait:.0f}s: {last_error}"
                )
                await self._sleep(wait)

        self._error_count += 1
        logger.error(
            f"Webhook {rule.name!r} for bot {profile.bot_id} failed after "
            f"{attempts} attempts: {last_error}"
        )
        return WebhookResult(
            webhook_name=rule.name,
            bot_id=profile.bot_id,
            success=False,
            attempts=attempts,
            status_code=status_code,
            error=last_error,
            duration_ms=(time.time() - start) * 1000,
        )

    async def _send_request(self, rule: WebhookRule, body: str) -> int:
        """
        Make one HTTP request.

        Args:
            rule: Webhook to call.
            body: JSON-encoded payload.

        Returns:
            The 2xx status code.

        Raises:
            WebhookDeliveryError: Non-2xx response.
            httpx.HTTPError: Transport failure or timeout.
        """
        headers = {"Content-Type": "application/json", **rule.headers}
        timeout = rule.timeout_ms / 1000

        if rule.method == HttpMethod.GET:
            response = await self._client.request(
                "GET",
                rule.url,
                params={"payload": body},
                headers=headers,
                timeout=timeout,
            )
        else:
            response = await self._client.request(
                rule.method.value,
                rule.url,
                content=body,
                headers=headers,
                timeout=timeout,
            )

        if not response.is_success:
            raise WebhookDeliveryError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.status_code

    @staticmethod
    def build_payload(
        profile: BotProfile,
        message: InboundMessage,
        rule: WebhookRule,
    ) -> dict[str, Any]:
        """JSON body sent to the webhook target."""
        return {
            "sender": message.sender,
            "message": message.content,
            "timestamp": message.timestamp.isoformat(),
            "botId": profile.bot_id,
            "botName": profile.name,
            "webhookName": rule.name,
            "webhookPattern": rule.pattern.pattern,
            "metadata": message.metadata,
        }

    @property
    def pending(self) -> int:
        """Number of background deliveries still running."""
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> bool:
        """
        Wait for background deliveries.

        Returns:
            True if all finished within the timeout.
        """
        if not self._tasks:
            return True
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        return not pending

    async def close(self, grace: float = 0.0) -> None:
        """Wait up to ``grace`` seconds for deliveries, cancel the rest, close the client."""
        if grace > 0 and not await self.drain(timeout=grace):
            logger.warning(f"Abandoning {self.pending} webhook deliveries")

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        await self._client.aclose()

    def get_stats(self) -> dict[str, Any]:
        """Get dispatcher statistics."""
        return {
            "trigger_count": self._trigger_count,
            "success_count": self._success_count,
            "error_count": self._error_count,
            "throttled_count": self._throttled_count,
            "pending": self.pending,
        }
