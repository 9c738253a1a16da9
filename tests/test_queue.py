"""
Tests for the per-bot dispatch queue.

Tests:
- FIFO order
- Delay before every send
- Failed sends are dropped
- Single drain loop per bot
"""

import asyncio

import pytest

from botfleet.auto_reply.queue import DispatchQueue, QueuedOutboundMessage
from botfleet.errors import QueueError


class Recorder:
    """Send callback that records messages and tracks concurrency."""

    def __init__(self, fail_on: set[str] | None = None):
        self.sent: list[QueuedOutboundMessage] = []
        self.fail_on = fail_on or set()
        self.active = 0
        self.max_active = 0

    async def __call__(self, message: QueuedOutboundMessage) -> str:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0)
            if message.content in self.fail_on:
                raise RuntimeError(f"boom: {message.content}")
            self.sent.append(message)
            return f"delivered-{message.id}"
        finally:
            self.active -= 1


class TestDispatchQueue:
    """Core queue behavior."""

    @pytest.mark.asyncio
    async def test_fifo_order(self, recording_sleep):
        queue = DispatchQueue(sleep=recording_sleep)
        send = Recorder()
        queue.setup_bot("bot-a", send, delay_ms=10)

        for content in ["m1", "m2", "m3"]:
            queue.enqueue("bot-a", "alice", content)

        assert await queue.drain(timeout=1)
        assert [m.content for m in send.sent] == ["m1", "m2", "m3"]

    @pytest.mark.asyncio
    async def test_delay_before_every_send(self, recording_sleep):
        queue = DispatchQueue(sleep=recording_sleep)
        send = Recorder()
        queue.setup_bot("bot-a", send, delay_ms=1000)

        queue.enqueue("bot-a", "alice", "m1")
        queue.enqueue("bot-a", "alice", "m2")
        await queue.drain(timeout=1)
        assert recording_sleep.calls == [1.0, 1.0]

        # First message after going idle waits too
        queue.enqueue("bot-a", "alice", "m3")
        await queue.drain(timeout=1)
        assert recording_sleep.calls == [1.0, 1.0, 1.0]

    @pytest.mark.asyncio
    async def test_delays_accumulate_in_real_time(self):
        queue = DispatchQueue()
        loop = asyncio.get_running_loop()
        sent_at: list[float] = []

        async def send(message):
            sent_at.append(loop.time())

        queue.setup_bot("bot-a", send, delay_ms=50)
        start = loop.time()
        queue.enqueue("bot-a", "alice", "m1")
        queue.enqueue("bot-a", "alice", "m2")
        await queue.drain(timeout=2)

        assert len(sent_at) == 2
        assert sent_at[0] - start >= 0.045
        assert sent_at[1] - start >= 0.095

    @pytest.mark.asyncio
    async def test_failed_send_is_dropped_and_queue_continues(self, recording_sleep):
        queue = DispatchQueue(sleep=recording_sleep)
        send = Recorder(fail_on={"m2"})
        queue.setup_bot("bot-a", send, delay_ms=0)

        for content in ["m1", "m2", "m3"]:
            queue.enqueue("bot-a", "alice", content)
        await queue.drain(timeout=1)

        assert [m.content for m in send.sent] == ["m1", "m3"]
        status = queue.get_bot_status("bot-a")
        assert status["sent"] == 2
        assert status["failed"] == 1
        assert status["queue_size"] == 0

    @pytest.mark.asyncio
    async def test_single_drain_loop_per_bot(self, recording_sleep):
        queue = DispatchQueue(sleep=recording_sleep)
        send = Recorder()
        queue.setup_bot("bot-a", send, delay_ms=0)

        queue.enqueue("bot-a", "alice", "m1")
        await asyncio.sleep(0)
        queue.enqueue("bot-a", "alice", "m2")
        await asyncio.sleep(0)
        queue.enqueue("bot-a", "alice", "m3")
        await queue.drain(timeout=1)

        assert send.max_active == 1
        assert [m.content for m in send.sent] == ["m1", "m2", "m3"]

    @pytest.mark.asyncio
    async def test_bots_are_independent(self, recording_sleep):
        queue = DispatchQueue(sleep=recording_sleep)
        send_a = Recorder(fail_on={"a1"})
        send_b = Recorder()
        queue.setup_bot("bot-a", send_a, delay_ms=0)
        queue.setup_bot("bot-b", send_b, delay_ms=0)

        queue.enqueue("bot-a", "alice", "a1")
        queue.enqueue("bot-b", "bob", "b1")
        await queue.drain(timeout=1)

        assert send_a.sent == []
        assert [m.content for m in send_b.sent] == ["b1"]

    @pytest.mark.asyncio
    async def test_message_fields(self, recording_sleep):
        queue = DispatchQueue(sleep=recording_sleep)
        send = Recorder()
        queue.setup_bot("bot-a", send, delay_ms=0)

        first = queue.enqueue("bot-a", "alice", "hi", {"link_preview": False})
        second = queue.enqueue("bot-a", "alice", "again")
        await queue.drain(timeout=1)

        assert first != second
        assert first.startswith("bot-a-")
        message = send.sent[0]
        assert message.id == first
        assert message.bot_id == "bot-a"
        assert message.recipient == "alice"
        assert message.metadata == {"link_preview": False}

    @pytest.mark.asyncio
    async def test_unknown_bot_raises(self):
        queue = DispatchQueue()
        with pytest.raises(QueueError):
            queue.enqueue("ghost", "alice", "hi")
        with pytest.raises(QueueError):
            queue.get_bot_status("ghost")

    def test_negative_delay_rejected(self):
        queue = DispatchQueue()
        with pytest.raises(QueueError):
            queue.setup_bot("bot-a", Recorder(), delay_ms=-1)

    @pytest.mark.asyncio
    async def test_status_while_pending(self):
        queue = DispatchQueue()
        queue.setup_bot("bot-a", Recorder(), delay_ms=60_000)

        queue.enqueue("bot-a", "alice", "m1")
        queue.enqueue("bot-a", "bob", "m2")
        await asyncio.sleep(0)

        status = queue.get_bot_status("bot-a")
        assert status["is_processing"] is True
        assert status["delay_ms"] == 60_000
        assert status["has_callback"] is True
        # m1 is popped and waiting, m2 is still queued
        assert status["queue_size"] == 1
        assert status["next_message"]["to"] == "bob"

        all_status = queue.get_all_status()
        assert all_status["total_queues"] == 1
        assert all_status["total_enqueued"] == 2

        await queue.shutdown()

    @pytest.mark.asyncio
    async def test_idle_after_drain(self, recording_sleep):
        queue = DispatchQueue(sleep=recording_sleep)
        queue.setup_bot("bot-a", Recorder(), delay_ms=0)
        queue.enqueue("bot-a", "alice", "m1")
        await queue.drain(timeout=1)

        status = queue.get_bot_status("bot-a")
        assert status["is_processing"] is False
        assert status["next_message"] is None

    @pytest.mark.asyncio
    async def test_clear_bot_drops_pending(self):
        queue = DispatchQueue()
        send = Recorder()
        queue.setup_bot("bot-a", send, delay_ms=60_000)
        queue.enqueue("bot-a", "alice", "m1")
        queue.enqueue("bot-a", "alice", "m2")
        await asyncio.sleep(0)

        assert queue.clear_bot("bot-a") == 1
        await queue.shutdown()
        assert send.sent == []

    @pytest.mark.asyncio
    async def test_shutdown_cancels_and_rejects_new_messages(self):
        queue = DispatchQueue()
        send = Recorder()
        queue.setup_bot("bot-a", send, delay_ms=60_000)
        queue.enqueue("bot-a", "alice", "m1")
        await asyncio.sleep(0)

        await queue.shutdown(grace=0.01)

        assert queue.is_closed
        assert send.sent == []
        assert not queue.has_bot("bot-a")
        with pytest.raises(QueueError):
            queue.enqueue("bot-a", "alice", "late")

    @pytest.mark.asyncio
    async def test_shutdown_grace_lets_queue_finish(self):
        queue = DispatchQueue()
        send = Recorder()
        queue.setup_bot("bot-a", send, delay_ms=10)
        queue.enqueue("bot-a", "alice", "m1")

        await queue.shutdown(grace=1.0)
        assert [m.content for m in send.sent] == ["m1"]

    @pytest.mark.asyncio
    async def test_setup_again_rebinds_callback_and_delay(self, recording_sleep):
        queue = DispatchQueue(sleep=recording_sleep)
        old, new = Recorder(), Recorder()
        queue.setup_bot("bot-a", old, delay_ms=1000)
        queue.setup_bot("bot-a", new, delay_ms=250)

        queue.enqueue("bot-a", "alice", "m1")
        await queue.drain(timeout=1)

        assert old.sent == []
        assert [m.content for m in new.sent] == ["m1"]
        assert recording_sleep.calls == [0.25]
        assert queue.get_bot_status("bot-a")["delay_ms"] == 250
