"""
In-process channel.

Keeps sent messages in memory and lets callers inject inbound messages.
Used by `botfleet run` when no provider is registered, and by tests.
"""

import itertools
import uuid
from datetime import datetime
from typing import Any

from loguru import logger

from botfleet.channels.base import BaseChannel, InboundMessage
from botfleet.errors import ChannelError


class MemoryChannel(BaseChannel):
    """Channel that never leaves the process."""

    name = "memory"

    def __init__(self, bot_id: str, address: str | None = None):
        super().__init__(bot_id)
        self.address = address or bot_id
        self.sent: list[dict[str, Any]] = []
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        self._connected = True
        logger.info(f"Memory channel connected for bot {self.bot_id}")
        await self._emit_state_change("CONNECTED")
        await self._emit_ready()

    async def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        await self._emit_disconnected("closed")

    async def send(
        self,
        recipient: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        if not self._connected:
            raise ChannelError(f"Channel for bot {self.bot_id} is not connected")

        delivery_id = f"mem-{self.bot_id}-{next(self._ids)}"
        self.sent.append({
            "id": delivery_id,
            "to": recipient,
            "content": content,
            "metadata": dict(metadata or {}),
        })
        logger.info(f"[{self.bot_id}] -> {recipient}: {content[:80]}")
        return delivery_id

    async def receive(
        self,
        sender: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> InboundMessage:
        """Inject an inbound message as if the provider delivered it."""
        message = InboundMessage(
            id=uuid.uuid4().hex,
            sender=sender,
            recipient=self.address,
            content=content,
            timestamp=datetime.now(),
            metadata=dict(metadata or {}),
        )
        await self._emit_message(message)
        return message
