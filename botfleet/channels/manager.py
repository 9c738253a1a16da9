"""
Channel registry for botfleet.

Creates one channel per bot from a registered factory and tears them
all down on shutdown.
"""

from typing import Callable

from loguru import logger

from botfleet.channels.base import BaseChannel
from botfleet.channels.memory import MemoryChannel
from botfleet.errors import ChannelError
from botfleet.rules.models import BotProfile

ChannelFactory = Callable[[BotProfile], BaseChannel]


def _memory_factory(profile: BotProfile) -> BaseChannel:
    return MemoryChannel(profile.bot_id, address=profile.phone)


class ChannelManager:
    """Owns the transport channel of every running bot."""

    def __init__(self, factory: ChannelFactory | None = None):
        self._factory = factory or _memory_factory
        self._channels: dict[str, BaseChannel] = {}

    def create_channel(self, profile: BotProfile) -> BaseChannel:
        """
        Create the channel for a bot.

        Raises:
            ChannelError: A channel already exists for the bot, or the
                factory failed.
        """
        bot_id = profile.bot_id
        if bot_id in self._channels:
            raise ChannelError(f"Channel already exists for bot {bot_id!r}")

        try:
            channel = self._factory(profile)
        except ChannelError:
            raise
        except Exception as e:
            raise ChannelError(f"Failed to create channel for bot {bot_id!r}: {e}") from e

        self._channels[bot_id] = channel
        logger.debug(f"Created {channel.name} channel for bot {bot_id}")
        return channel

    def get_channel(self, bot_id: str) -> BaseChannel | None:
        return self._channels.get(bot_id)

    def has_channel(self, bot_id: str) -> bool:
        return bot_id in self._channels

    @property
    def channels(self) -> dict[str, BaseChannel]:
        return dict(self._channels)

    async def remove_channel(self, bot_id: str) -> None:
        """Disconnect and forget one channel."""
        channel = self._channels.pop(bot_id, None)
        if channel is None:
            return
        try:
            await channel.disconnect()
        except Exception as e:
            logger.warning(f"Error disconnecting channel for bot {bot_id}: {e}")

    async def remove_all(self) -> None:
        for bot_id in list(self._channels):
            await self.remove_channel(bot_id)
