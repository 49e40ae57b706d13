"""
Tests for the in-process channel.

Covers queue hand-off in both directions, ordering, null and edge-case
messages, the bounded send timeout and cooperative cancellation.
"""

import logging
import queue
import threading
import time

import pytest

from playercomm.channel import ChannelCancelledError, InProcessChannel, create_channel_pair
from playercomm.utils.cancellation import CancellationToken


@pytest.fixture
def queues():
    return queue.Queue(maxsize=16), queue.Queue(maxsize=16)


@pytest.fixture
def channel(queues):
    incoming, outgoing = queues
    return InProcessChannel(incoming, outgoing)


class TestSendReceive:
    """Test basic queue hand-off."""

    def test_send_enqueues_to_outgoing(self, queues, channel):
        """Test send puts the message on the outgoing queue."""
        _, outgoing = queues
        channel.send("Chit Chat")

        assert outgoing.qsize() == 1
        assert outgoing.get_nowait() == "Chit Chat"

    def test_receive_dequeues_from_incoming(self, queues, channel):
        """Test receive takes the message from the incoming queue."""
        incoming, _ = queues
        incoming.put("Chit Chat")

        assert channel.receive() == "Chit Chat"
        assert incoming.empty()

    def test_send_preserves_order(self, queues, channel):
        """Test multiple sends keep FIFO order."""
        _, outgoing = queues
        for message in ["first", "second", "third"]:
            channel.send(message)

        assert [outgoing.get_nowait() for _ in range(3)] == ["first", "second", "third"]

    def test_receive_preserves_order(self, queues, channel):
        """Test multiple receives keep FIFO order."""
        incoming, _ = queues
        for message in ["first", "second", "third"]:
            incoming.put(message)

        assert [channel.receive() for _ in range(3)] == ["first", "second", "third"]

    def test_empty_string_message(self, queues, channel):
        """Test empty strings are real messages."""
        _, outgoing = queues
        channel.send("")

        assert outgoing.get_nowait() == ""

    def test_none_is_ignored(self, queues, channel):
        """Test sending None queues nothing and raises nothing."""
        _, outgoing = queues
        channel.send(None)

        assert outgoing.empty()

    def test_long_message(self, queues, channel):
        """Test a 10k character message passes unchanged."""
        _, outgoing = queues
        message = "A" * 10000
        channel.send(message)

        assert outgoing.get_nowait() == message

    def test_close_is_idempotent(self, channel):
        """Test close can be called repeatedly."""
        channel.close()
        channel.close()


class TestBlocking:
    """Test blocking and timeout behaviour."""

    def test_receive_blocks_until_message(self, queues, channel):
        """Test receive waits on an empty queue and returns the offered item."""
        incoming, _ = queues
        timer = threading.Timer(0.2, incoming.put, args=("late",))
        timer.start()

        start = time.monotonic()
        message = channel.receive()
        elapsed = time.monotonic() - start
        timer.join()

        assert message == "late"
        assert elapsed >= 0.15

    def test_full_queue_drops_after_timeout(self, caplog):
        """Test a send to a full queue is dropped and logged after the timeout."""
        incoming, outgoing = queue.Queue(maxsize=1), queue.Queue(maxsize=1)
        channel = InProcessChannel(incoming, outgoing, send_timeout=0.2)
        channel.send("kept")

        with caplog.at_level(logging.ERROR, logger="playercomm.channel.in_process"):
            start = time.monotonic()
            channel.send("dropped")
            elapsed = time.monotonic() - start

        assert 0.15 <= elapsed < 1.0
        assert outgoing.qsize() == 1
        assert outgoing.get_nowait() == "kept"
        assert "Failed to send message within timeout" in caplog.text

    def test_send_waits_for_room(self):
        """Test a send to a full queue succeeds once the peer drains it."""
        incoming, outgoing = queue.Queue(maxsize=1), queue.Queue(maxsize=1)
        channel = InProcessChannel(incoming, outgoing, send_timeout=1.0)
        channel.send("first")

        timer = threading.Timer(0.2, outgoing.get)
        timer.start()
        channel.send("second")
        timer.join()

        assert outgoing.get_nowait() == "second"


class TestCancellation:
    """Test cooperative cancellation of blocking waits."""

    def test_receive_on_cancelled_token_returns_none(self, queues):
        """Test receive returns None and the token stays cancelled."""
        incoming, outgoing = queues
        token = CancellationToken()
        channel = InProcessChannel(incoming, outgoing, token)
        token.cancel()

        assert channel.receive() is None
        assert token.cancelled

    def test_cancel_unblocks_waiting_receive(self, channel):
        """Test cancelling from another thread ends a blocked receive."""
        results = []
        worker = threading.Thread(target=lambda: results.append(channel.receive()))
        worker.start()

        time.sleep(0.1)
        channel.token.cancel()
        worker.join(timeout=2.0)

        assert not worker.is_alive()
        assert results == [None]
        assert channel.token.cancelled

    def test_send_on_cancelled_token_raises(self, queues):
        """Test send reports cancellation as an error and keeps the flag set."""
        incoming, outgoing = queues
        token = CancellationToken()
        channel = InProcessChannel(incoming, outgoing, token)
        token.cancel()

        with pytest.raises(ChannelCancelledError):
            channel.send("Chit Chat")

        assert token.cancelled
        assert outgoing.empty()

    def test_cancel_during_blocked_send_raises(self):
        """Test cancellation while waiting for room is not a silent timeout."""
        incoming, outgoing = queue.Queue(maxsize=1), queue.Queue(maxsize=1)
        token = CancellationToken()
        channel = InProcessChannel(incoming, outgoing, token, send_timeout=5.0)
        channel.send("fills the queue")

        timer = threading.Timer(0.1, token.cancel)
        timer.start()
        start = time.monotonic()
        with pytest.raises(ChannelCancelledError):
            channel.send("blocked")
        timer.join()

        assert time.monotonic() - start < 2.0
        assert token.cancelled

    def test_none_ignored_even_when_cancelled(self, queues):
        """Test sending None stays a no-op on a cancelled channel."""
        incoming, outgoing = queues
        token = CancellationToken()
        channel = InProcessChannel(incoming, outgoing, token)
        token.cancel()

        channel.send(None)
        assert outgoing.empty()


class TestChannelPair:
    """Test channels created as a cross-wired pair."""

    def test_bidirectional_communication(self):
        """Test each side receives what the other sends."""
        first, second = create_channel_pair(4)

        first.send("ping")
        assert second.receive() == "ping"

        second.send("pong")
        assert first.receive() == "pong"

    def test_pair_uses_given_tokens(self):
        """Test each channel observes its own token only."""
        first_token, second_token = CancellationToken(), CancellationToken()
        first, second = create_channel_pair(4, first_token, second_token)
        second_token.cancel()

        assert second.receive() is None
        first.send("still works")
        assert first.token is first_token
        assert not first_token.cancelled

    def test_invalid_capacity(self):
        """Test a non-positive capacity is rejected."""
        with pytest.raises(ValueError):
            create_channel_pair(0)

    def test_concurrent_communication(self):
        """Test a producer and consumer thread keep order across a small queue."""
        first, second = create_channel_pair(2)
        messages = [f"message-{i}" for i in range(100)]
        received = []

        def consume():
            for _ in messages:
                received.append(second.receive())

        consumer = threading.Thread(target=consume)
        consumer.start()
        for message in messages:
            first.send(message)
        consumer.join(timeout=5.0)

        assert received == messages
