"""
Outbound dispatch queue for botfleet auto-replies.

Provides:
- One FIFO queue per bot
- A fixed "think time" before every send
- Single-flight drain loop per bot
"""

import asyncio
import itertools
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from loguru import logger

from botfleet.errors import QueueError

DEFAULT_DELAY_MS = 2000


@dataclass
class QueuedOutboundMessage:
    """A reply waiting to be sent."""
    id: str
    bot_id: str
    recipient: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @property
    def age_ms(self) -> int:
        return int((time.time() - self.timestamp) * 1000)


# Async function(message) -> delivery id
SendCallback = Callable[[QueuedOutboundMessage], Awaitable[Any]]


@dataclass
class _BotQueue:
    """Per-bot queue state. Only DispatchQueue touches it."""
    send: SendCallback | None
    delay_ms: int = DEFAULT_DELAY_MS
    messages: deque[QueuedOutboundMessage] = field(default_factory=deque)
    processing: bool = False
    task: asyncio.Task | None = None
    sent: int = 0
    failed: int = 0


class DispatchQueue:
    """
    Serialized, delayed outbound delivery for every bot in the fleet.

    Flow per bot:
    1. enqueue() appends to the tail
    2. If the bot is idle a drain task starts
    3. The drain task waits the bot's delay, sends the head, repeats
    4. When the queue is empty the bot goes idle again

    A failed send is logged and dropped; it is never requeued.
    """

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._sleep = sleep
        self._queues: dict[str, _BotQueue] = {}
        self._ids = itertools.count(1)
        self._closed = False

        # Stats
        self._total_enqueued = 0

    def setup_bot(
        self,
        bot_id: str,
        send: SendCallback,
        delay_ms: int = DEFAULT_DELAY_MS,
    ) -> None:
        """
        Bind a bot's send callback and delay.

        Args:
            bot_id: Bot identifier.
            send: Async callback that delivers one message.
            delay_ms: Wait before each send, in milliseconds.
        """
        if delay_ms < 0:
            raise QueueError(f"Queue delay for bot {bot_id!r} must be non-negative")

        state = self._queues.get(bot_id)
        if state is None:
            self._queues[bot_id] = _BotQueue(send=send, delay_ms=delay_ms)
        else:
            state.send = send
            state.delay_ms = delay_ms

        logger.info(f"Configured message queue for bot {bot_id}: delay={delay_ms}ms")

    def has_bot(self, bot_id: str) -> bool:
        return bot_id in self._queues

    def enqueue(
        self,
        bot_id: str,
        recipient: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """
        Add a message to the tail of a bot's queue.

        Must be called from inside the running event loop.

        Returns:
            The queued message id.

        Raises:
            QueueError: Unknown bot or queue already shut down.
        """
        if self._closed:
            raise QueueError("Dispatch queue is shut down")

        state = self._get(bot_id)
        message = QueuedOutboundMessage(
            id=f"{bot_id}-{int(time.time() * 1000)}-{next(self._ids)}",
            bot_id=bot_id,
            recipient=recipient,
            content=content,
            metadata=dict(metadata or {}),
        )
        state.messages.append(message)
        self._total_enqueued += 1

        logger.info(
            f"Message queued for bot {bot_id}: {message.id} "
            f"(queue size: {len(state.messages)})"
        )

        if not state.processing:
            # Flag flips before the task runs so a second enqueue in the
            # same tick cannot start another drain loop
            state.processing = True
            state.task = asyncio.get_running_loop().create_task(
                self._drain_loop(bot_id, state),
                name=f"dispatch-queue:{bot_id}",
            )

        return message.id

    async def _drain_loop(self, bot_id: str, state: _BotQueue) -> None:
        """Send queued messages one by one until the queue is empty."""
        logger.debug(f"Started processing queue for bot {bot_id}")
        try:
            while state.messages:
                message = state.messages.popleft()

                logger.debug(f"Waiting {state.delay_ms}ms before sending {message.id}")
                await self._sleep(state.delay_ms / 1000)

                if state.send is None:
                    state.failed += 1
                    logger.error(f"No send callback configured for bot {bot_id}, dropping {message.id}")
                    continue

                try:
                    await state.send(message)
                    state.sent += 1
                    logger.info(f"Queued message sent: {message.id}")
                except Exception as e:
                    state.failed += 1
                    logger.error(f"Error sending queued message {message.id} from bot {bot_id}: {e}")
        finally:
            state.processing = False
            state.task = None
            logger.debug(f"Queue processing completed for bot {bot_id}")

    def _get(self, bot_id: str) -> _BotQueue:
        state = self._queues.get(bot_id)
        if state is None:
            raise QueueError(f"No queue configured for bot {bot_id!r}")
        return state

    def get_bot_status(self, bot_id: str) -> dict[str, Any]:
        """Read-only status of one bot's queue."""
        state = self._get(bot_id)
        head = state.messages[0] if state.messages else None
        return {
            "bot_id": bot_id,
            "queue_size": len(state.messages),
            "is_processing": state.processing,
            "delay_ms": state.delay_ms,
            "has_callback": state.send is not None,
            "sent": state.sent,
            "failed": state.failed,
            "next_message": {
                "id": head.id,
                "to": head.recipient,
                "age_ms": head.age_ms,
            } if head else None,
        }

    def get_all_status(self) -> dict[str, Any]:
        """Status of every configured queue."""
        queues = [self.get_bot_status(bot_id) for bot_id in self._queues]
        return {
            "total_queues": len(queues),
            "total_enqueued": self._total_enqueued,
            "queues": queues,
        }

    def clear_bot(self, bot_id: str) -> int:
        """
        Drop pending messages for a bot.

        A send already in flight still completes.

        Returns:
            Number of messages dropped.
        """
        state = self._get(bot_id)
        dropped = len(state.messages)
        state.messages.clear()
        logger.info(f"Queue cleared for bot {bot_id} ({dropped} dropped)")
        return dropped

    async def remove_bot(self, bot_id: str) -> None:
        """Cancel a bot's drain loop and forget its queue."""
        state = self._queues.pop(bot_id, None)
        if state is None:
            return
        state.messages.clear()
        if state.task:
            state.task.cancel()
            try:
                await state.task
            except asyncio.CancelledError:
                pass

    async def drain(self, timeout: float | None = None) -> bool:
        """
        Wait for active drain loops to finish.

        Returns:
            True if every queue went idle within the timeout.
        """
        tasks = [s.task for s in self._queues.values() if s.task]
        if not tasks:
            return True
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        return not pending

    async def shutdown(self, grace: float = 0.0) -> None:
        """
        Stop accepting messages and release all queues.

        Drain loops get ``grace`` seconds to empty their queues, then
        whatever is left is cancelled.
        """
        logger.info("Shutting down dispatch queue...")
        self._closed = True

        if grace > 0 and not await self.drain(timeout=grace):
            logger.warning("Dispatch queue grace period expired, cancelling pending sends")

        for bot_id in list(self._queues):
            await self.remove_bot(bot_id)

        logger.info("Dispatch queue shut down")

    @property
    def is_closed(self) -> bool:
        return self._closed
