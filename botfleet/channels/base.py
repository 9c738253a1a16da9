"""
Transport boundary for botfleet.

A channel authenticates one bot against a chat provider, delivers inbound
messages to its observers and sends outbound messages. Concrete providers
live outside this package; MemoryChannel is the in-process implementation
used for local runs and tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger


@dataclass(frozen=True)
class InboundMessage:
    """A message received by a bot."""
    id: str
    sender: str
    recipient: str
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def from_me(self) -> bool:
        """Sent by the bot's own account."""
        return bool(self.metadata.get("fromMe", self.metadata.get("from_me", False)))

    @property
    def is_group(self) -> bool:
        return bool(self.metadata.get("isGroup", self.metadata.get("is_group", False)))


class ChannelObserver:
    """
    Receives channel events.

    Every hook defaults to a no-op so observers only override what they use.
    """

    async def on_message(self, message: InboundMessage) -> None:
        pass

    async def on_ready(self) -> None:
        pass

    async def on_disconnected(self, reason: str) -> None:
        pass

    async def on_auth_failure(self, error: Exception) -> None:
        pass

    async def on_connection_error(self, error: Exception) -> None:
        pass

    async def on_state_change(self, state: str) -> None:
        pass


class BaseChannel(ABC):
    """
    Base class for a bot's transport channel.

    Subclasses implement connect(), disconnect() and send(), and call the
    _emit_* helpers when the provider reports something.
    """

    name = "base"

    def __init__(self, bot_id: str):
        self.bot_id = bot_id
        self._observers: list[ChannelObserver] = []
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def subscribe(self, observer: ChannelObserver) -> None:
        """Register an observer. Registering twice is a no-op."""
        if observer not in self._observers:
            self._observers.append(observer)

    def unsubscribe(self, observer: ChannelObserver) -> None:
        """Remove an observer if present."""
        if observer in self._observers:
            self._observers.remove(observer)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    @abstractmethod
    async def connect(self) -> None:
        """Open the session with the provider."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the session and release resources."""

    @abstractmethod
    async def send(
        self,
        recipient: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """
        Send one message.

        Returns:
            Provider delivery id.
        """

    async def _emit(self, hook: str, *args: Any) -> None:
        """Call ``hook`` on every observer; one failing observer does not stop the rest."""
        for observer in list(self._observers):
            try:
                await getattr(observer, hook)(*args)
            except Exception as e:
                logger.error(f"Channel {self.name} ({self.bot_id}) observer error in {hook}: {e}")

    async def _emit_message(self, message: InboundMessage) -> None:
        await self._emit("on_message", message)

    async def _emit_ready(self) -> None:
        await self._emit("on_ready")

    async def _emit_disconnected(self, reason: str) -> None:
        await self._emit("on_disconnected", reason)

    async def _emit_auth_failure(self, error: Exception) -> None:
        await self._emit("on_auth_failure", error)

    async def _emit_connection_error(self, error: Exception) -> None:
        await self._emit("on_connection_error", error)

    async def _emit_state_change(self, state: str) -> None:
        await self._emit("on_state_change", state)
