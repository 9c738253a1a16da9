"""
Fleet coordinator for botfleet.

Composition root for a running fleet:
- Starts bots one after another with a fixed stagger
- Wires each bot's channel to the auto-reply and webhook paths
- Runs the cooldown sweep in the background
- Reports fleet status and shuts everything down gracefully
"""

import asyncio
import signal
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from loguru import logger

from botfleet.auto_reply.cooldown import CooldownTracker
from botfleet.auto_reply.matcher import AutoResponseMatcher
from botfleet.auto_reply.queue import DispatchQueue, QueuedOutboundMessage
from botfleet.channels.base import BaseChannel, ChannelObserver, InboundMessage
from botfleet.channels.manager import ChannelManager
from botfleet.errors import BotFleetError, QueueError
from botfleet.hooks.service import WebhookDispatcher
from botfleet.rules.models import BotProfile


class SkipReason:
    """Why an inbound message was not processed."""
    UNKNOWN_BOT = "unknown_bot"
    NOT_ACCEPTING = "not_accepting"
    FROM_ME = "from_me"
    GROUP = "group"
    IGNORED_SENDER = "ignored_sender"


@dataclass
class InboundOutcome:
    """What the coordinator did with one inbound message."""
    bot_id: str
    message_id: str
    skipped: str | None = None
    reply_id: str | None = None
    webhooks_scheduled: bool = False


class _BotObserver(ChannelObserver):
    """Forwards one bot's channel events to the coordinator."""

    def __init__(self, coordinator: "FleetCoordinator", profile: BotProfile):
        self._coordinator = coordinator
        self._profile = profile

    async def on_message(self, message: InboundMessage) -> None:
        await self._coordinator.handle_message(self._profile.bot_id, message)

    async def on_ready(self) -> None:
        logger.info(f"Bot {self._profile.name!r} ({self._profile.bot_id}) is ready")

    async def on_disconnected(self, reason: str) -> None:
        logger.warning(f"Bot {self._profile.name!r} disconnected: {reason}")

    async def on_auth_failure(self, error: Exception) -> None:
        logger.error(f"Bot {self._profile.name!r} authentication failed: {error}")

    async def on_connection_error(self, error: Exception) -> None:
        logger.error(f"Bot {self._profile.name!r} connection error: {error}")

    async def on_state_change(self, state: str) -> None:
        logger.info(f"Bot {self._profile.name!r} state changed to {state}")


@dataclass
class _BotRuntime:
    profile: BotProfile
    channel: BaseChannel
    observer: _BotObserver
    cooldowns: CooldownTracker
    matcher: AutoResponseMatcher


class FleetCoordinator:
    """
    Owns every service of a running fleet.

    Nothing here is global: the caller constructs one coordinator and
    passes it where needed (CLI, HTTP API).
    """

    def __init__(
        self,
        channels: ChannelManager | None = None,
        cooldowns: CooldownTracker | None = None,
        queue: DispatchQueue | None = None,
        webhooks: WebhookDispatcher | None = None,
        startup_delay: float = 3.0,
        sweep_interval: float = 60.0,
        shutdown_grace: float = 10.0,
        shared_cooldowns: bool = True,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.channels = channels or ChannelManager()
        self.cooldowns = cooldowns or CooldownTracker()
        self.queue = queue or DispatchQueue()
        self.webhooks = webhooks or WebhookDispatcher(self.cooldowns)
        self.startup_delay = startup_delay
        self.sweep_interval = sweep_interval
        self.shutdown_grace = shutdown_grace
        self.shared_cooldowns = shared_cooldowns
        self._sleep = sleep

        self._bots: dict[str, _BotRuntime] = {}
        self._running = False
        self._accepting = False
        self._stopped = False
        self._sweep_task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None

    # ========== Lifecycle ==========

    async def start(self, profiles: Iterable[BotProfile]) -> dict[str, BotProfile]:
        """
        Start every bot, one at a time.

        A bot that fails to start is logged and skipped; the rest of the
        fleet still starts.

        Returns:
            Profiles of the bots that started, by id.
        """
        if self._stopped:
            raise BotFleetError("A stopped fleet cannot be restarted")
        if self._running:
            logger.info("Fleet is already running")
            return self.profiles

        profiles = list(profiles)
        if not profiles:
            logger.warning("No bots configured")

        logger.info(f"Starting fleet with {len(profiles)} bot(s)...")
        self._running = True
        self._accepting = True

        for index, profile in enumerate(profiles):
            if index > 0 and self.startup_delay > 0:
                logger.info(f"Waiting {self.startup_delay}s before starting next bot...")
                await self._sleep(self.startup_delay)

            if profile.bot_id in self._bots:
                logger.error(f"Skipping duplicate bot id {profile.bot_id!r}")
                continue

            try:
                await self._start_bot(profile)
            except Exception as e:
                logger.error(f"Failed to start bot {profile.bot_id}: {e}")
                await self._teardown_bot(profile.bot_id)

        if self.sweep_interval > 0:
            self._sweep_task = asyncio.create_task(self._sweep_loop(), name="cooldown-sweep")

        logger.info(f"Fleet started with {len(self._bots)} bot(s)")
        return self.profiles

    async def _start_bot(self, profile: BotProfile) -> None:
        bot_id = profile.bot_id
        logger.info(f"Initializing bot {profile.name!r} ({bot_id})")

        channel = self.channels.create_channel(profile)

        async def send(message: QueuedOutboundMessage) -> str:
            return await channel.send(message.recipient, message.content, message.metadata)

        self.queue.setup_bot(bot_id, send, delay_ms=profile.settings.outbound_delay_ms)

        cooldowns = self.cooldowns if self.shared_cooldowns else CooldownTracker()
        runtime = _BotRuntime(
            profile=profile,
            channel=channel,
            observer=_BotObserver(self, profile),
            cooldowns=cooldowns,
            matcher=AutoResponseMatcher(cooldowns),
        )
        self._bots[bot_id] = runtime
        channel.subscribe(runtime.observer)

        await channel.connect()
        logger.info(f"Bot {profile.name!r} initialized")

    async def _teardown_bot(self, bot_id: str) -> None:
        runtime = self._bots.pop(bot_id, None)
        if runtime:
            runtime.channel.unsubscribe(runtime.observer)
        await self.queue.remove_bot(bot_id)
        await self.channels.remove_channel(bot_id)

    async def stop(self, grace: float | None = None) -> None:
        """
        Stop the fleet.

        Inbound messages are refused from now on. Queue drains and webhook
        deliveries get ``grace`` seconds, then everything is released.
        """
        if not self._running:
            return

        grace = self.shutdown_grace if grace is None else grace
        logger.info("Stopping fleet...")
        self._accepting = False

        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

        if grace > 0:
            queue_done, hooks_done = await asyncio.gather(
                self.queue.drain(timeout=grace),
                self.webhooks.drain(timeout=grace),
            )
            if not (queue_done and hooks_done):
                logger.warning("Shutdown grace period expired with work still pending")

        await self.queue.shutdown()
        await self.webhooks.close()

        for runtime in self._bots.values():
            runtime.channel.unsubscribe(runtime.observer)
        await self.channels.remove_all()
        self._bots.clear()

        self._running = False
        self._stopped = True
        if self._stop_event:
            self._stop_event.set()
        logger.info("Fleet stopped")

    async def run_until_signal(self) -> None:
        """Block until SIGINT/SIGTERM, then stop gracefully."""
        loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._stop_event.set)
            except (NotImplementedError, RuntimeError):
                # No signal handlers on this platform/loop; Ctrl+C still
                # raises KeyboardInterrupt in the caller
                pass

        try:
            await self._stop_event.wait()
            logger.info("Received shutdown signal")
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.remove_signal_handler(sig)
                except (NotImplementedError, RuntimeError):
                    pass
            await self.stop()

    async def _sweep_loop(self) -> None:
        """Periodically drop expired cooldown entries."""
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                for tracker in self._trackers():
                    tracker.sweep_expired()
            except Exception as e:
                logger.error(f"Cooldown sweep failed: {e}")

    def _trackers(self) -> list[CooldownTracker]:
        trackers = [self.cooldowns]
        for runtime in self._bots.values():
            if runtime.cooldowns is not self.cooldowns:
                trackers.append(runtime.cooldowns)
        return trackers

    # ========== Message handling ==========

    async def handle_message(self, bot_id: str, message: InboundMessage) -> InboundOutcome:
        """
        Route one inbound message.

        The auto-response and webhook paths run independently: an error
        in one never suppresses the other.
        """
        outcome = InboundOutcome(bot_id=bot_id, message_id=message.id)

        runtime = self._bots.get(bot_id)
        if runtime is None:
            outcome.skipped = SkipReason.UNKNOWN_BOT
            return outcome
        if not self._accepting:
            outcome.skipped = SkipReason.NOT_ACCEPTING
            return outcome

        profile = runtime.profile
        settings = profile.settings

        if message.from_me:
            outcome.skipped = SkipReason.FROM_ME
            return outcome
        if settings.ignore_groups and message.is_group:
            logger.debug(f"Ignoring group message for bot {bot_id}")
            outcome.skipped = SkipReason.GROUP
            return outcome
        if settings.is_ignored_sender(message.sender):
            logger.debug(f"Ignoring message from {message.sender} for bot {bot_id}")
            outcome.skipped = SkipReason.IGNORED_SENDER
            return outcome

        logger.debug(f"Message received for bot {bot_id} from {message.sender}: {message.content[:50]!r}")

        try:
            rule = runtime.matcher.match(profile, message)
            if rule is not None:
                outcome.reply_id = self.queue.enqueue(
                    bot_id, message.sender, rule.response, rule.metadata
                )
        except Exception as e:
            logger.error(f"Auto-response failed for bot {bot_id}: {e}")

        try:
            task = self.webhooks.dispatch_in_background(profile, message, runtime.cooldowns)
            outcome.webhooks_scheduled = task is not None
        except Exception as e:
            logger.error(f"Webhook dispatch failed for bot {bot_id}: {e}")

        return outcome

    def send_message(
        self,
        bot_id: str,
        recipient: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """
        Queue a manual message for a bot.

        Raises:
            QueueError: Unknown bot or fleet not accepting messages.
        """
        if bot_id not in self._bots:
            raise QueueError(f"Bot {bot_id!r} not found")
        if not self._accepting:
            raise QueueError("Fleet is not accepting messages")
        return self.queue.enqueue(bot_id, recipient, content, metadata)

    # ========== Introspection ==========

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def profiles(self) -> dict[str, BotProfile]:
        return {bot_id: runtime.profile for bot_id, runtime in self._bots.items()}

    def get_profile(self, bot_id: str) -> BotProfile | None:
        runtime = self._bots.get(bot_id)
        return runtime.profile if runtime else None

    def get_channel(self, bot_id: str) -> BaseChannel | None:
        runtime = self._bots.get(bot_id)
        return runtime.channel if runtime else None

    def get_bot_status(self, bot_id: str) -> dict[str, Any] | None:
        runtime = self._bots.get(bot_id)
        if runtime is None:
            return None
        queue = self.queue.get_bot_status(bot_id)
        return {
            "id": bot_id,
            "name": runtime.profile.name,
            "connected": runtime.channel.is_connected,
            "auto_responses": len(runtime.profile.auto_responses),
            "webhooks": len(runtime.profile.webhooks),
            "queue": {
                "queue_size": queue["queue_size"],
                "delay_ms": queue["delay_ms"],
                "is_processing": queue["is_processing"],
                "has_callback": queue["has_callback"],
            },
        }

    def get_status(self) -> dict[str, Any]:
        """Read-only fleet status for the API."""
        bots = [self.get_bot_status(bot_id) for bot_id in self._bots]
        return {
            "is_running": self._running,
            "total_bots": len(bots),
            "bots": bots,
            "queues": self.queue.get_all_status(),
            "webhooks": self.webhooks.get_stats(),
            "cooldowns": self.cooldowns.get_stats(),
            "shared_cooldowns": self.shared_cooldowns,
        }
