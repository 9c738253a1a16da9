"""
Cooldown tracking for botfleet.

Keeps the last trigger time for every (sender, rule key) pair so a rule
does not fire again for the same sender inside its window. Both the
auto-response and the webhook paths use one tracker; callers keep their
keys in separate namespaces.

Every method is synchronous. A check followed by a set never yields to
the event loop, so no lock is needed under asyncio.
"""

import time
from collections import defaultdict
from typing import Any, Callable

from loguru import logger

# Entries older than this are dropped by sweep_expired()
RETENTION_SECONDS = 60 * 60


class CooldownTracker:
    """
    Throttling ledger: sender -> key -> last trigger time.

    The clock returns seconds and defaults to ``time.monotonic``.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        retention_seconds: float = RETENTION_SECONDS,
    ):
        self._clock = clock
        self.retention_seconds = retention_seconds
        self._entries: dict[str, dict[str, float]] = defaultdict(dict)

        # Stats
        self._total_triggers = 0
        self._total_throttled = 0
        self._total_swept = 0

    def is_on_cooldown(self, sender: str, key: str, window_ms: int | None) -> bool:
        """
        Check whether ``key`` fired for ``sender`` within the window.

        Args:
            sender: Sender identifier.
            key: Rule key.
            window_ms: Cooldown window in milliseconds. 0 or None disables it.

        Returns:
            True if the pair is still throttled.
        """
        if not window_ms or window_ms <= 0:
            return False

        keys = self._entries.get(sender)
        if not keys:
            return False

        last = keys.get(key)
        if last is None:
            return False

        return (self._clock() - last) * 1000 < window_ms

    def set_cooldown(self, sender: str, key: str) -> None:
        """Record a trigger for (sender, key) now."""
        self._entries[sender][key] = self._clock()
        self._total_triggers += 1

    def try_acquire(self, sender: str, key: str, window_ms: int | None) -> bool:
        """
        Check and set in one step.

        Returns:
            False if the pair is throttled, otherwise records the trigger
            and returns True.
        """
        if self.is_on_cooldown(sender, key, window_ms):
            self._total_throttled += 1
            return False
        self.set_cooldown(sender, key)
        return True

    def remaining_ms(self, sender: str, key: str, window_ms: int | None) -> int:
        """Milliseconds left before (sender, key) may fire again."""
        if not self.is_on_cooldown(sender, key, window_ms):
            return 0
        elapsed_ms = (self._clock() - self._entries[sender][key]) * 1000
        return max(0, int(window_ms - elapsed_ms))

    def sweep_expired(self) -> int:
        """
        Drop entries older than the retention window.

        Returns:
            Number of entries removed.
        """
        cutoff = self._clock() - self.retention_seconds
        removed = 0

        for sender in list(self._entries):
            keys = self._entries[sender]
            for key in [k for k, ts in keys.items() if ts < cutoff]:
                del keys[key]
                removed += 1
            if not keys:
                del self._entries[sender]

        if removed:
            logger.debug(f"Swept {removed} expired cooldown entries")
        self._total_swept += removed
        return removed

    def clear_sender(self, sender: str) -> None:
        """Forget every cooldown for one sender."""
        self._entries.pop(sender, None)

    def clear(self) -> None:
        """Forget all cooldowns."""
        self._entries.clear()

    @property
    def size(self) -> int:
        """Number of tracked (sender, key) pairs."""
        return sum(len(keys) for keys in self._entries.values())

    def get_stats(self) -> dict[str, Any]:
        """Get tracker statistics."""
        return {
            "tracked_senders": len(self._entries),
            "tracked_entries": self.size,
            "total_triggers": self._total_triggers,
            "total_throttled": self._total_throttled,
            "total_swept": self._total_swept,
        }
