"""
In-process channel for two players running as threads of one process.

Each direction is a bounded FIFO queue. A pair of channels shares the two
queues crosswise: one channel's outbound queue is its peer's inbound queue.
Each thread only writes its outbound queue and only reads its inbound queue,
so the queues' own locking is all the synchronization needed.
"""

import logging
import queue
import time
from typing import Optional, Tuple

from ..utils.cancellation import CancellationToken, POLL_INTERVAL
from .base import ChannelCancelledError

logger = logging.getLogger(__name__)

# How long a send may wait for room in a full outbound queue.
SEND_TIMEOUT = 1.0


class InProcessChannel:
    """
    Channel over a pair of bounded blocking queues.

    Delivery is at-most-once: a message that cannot be queued within
    ``send_timeout`` is dropped and logged.
    """

    def __init__(self, inbound: queue.Queue, outbound: queue.Queue,
                 token: Optional[CancellationToken] = None,
                 send_timeout: float = SEND_TIMEOUT):
        """
        Initialize the channel.

        Args:
            inbound: Queue this channel reads (the peer writes it)
            outbound: Queue this channel writes (the peer reads it)
            token: Cancellation token of the thread that owns this channel
            send_timeout: Seconds to wait for room in a full outbound queue
        """
        self._inbound = inbound
        self._outbound = outbound
        self.token = token if token is not None else CancellationToken()
        self.send_timeout = send_timeout

    def send(self, message: Optional[str]) -> None:
        """
        Queue a message for the peer.

        Raises:
            ChannelCancelledError: If the owning thread is cancelled while
                waiting for room. The token stays cancelled.
        """
        if message is None:
            return

        deadline = time.monotonic() + self.send_timeout
        while True:
            if self.token.cancelled:
                raise ChannelCancelledError("Send cancelled while waiting for queue space")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.error(f"Failed to send message within timeout: {message}")
                return

            try:
                self._outbound.put(message, timeout=min(remaining, POLL_INTERVAL))
                return
            except queue.Full:
                continue

    def receive(self) -> Optional[str]:
        """
        Wait for the next message from the peer.

        Returns:
            The oldest queued message, or None once the owning thread is
            cancelled
        """
        while not self.token.cancelled:
            try:
                return self._inbound.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue

        logger.warning("Receive interrupted: channel owner was cancelled")
        return None

    def close(self) -> None:
        """Nothing to release; queues are garbage collected with the pair."""
        pass

    def pending(self) -> int:
        """Number of messages waiting in the inbound queue."""
        return self._inbound.qsize()

    def __repr__(self):
        return (f"InProcessChannel(inbound={self._inbound.qsize()}/{self._inbound.maxsize}, "
                f"outbound={self._outbound.qsize()}/{self._outbound.maxsize})")


def create_channel_pair(capacity: int,
                        first_token: Optional[CancellationToken] = None,
                        second_token: Optional[CancellationToken] = None,
                        send_timeout: float = SEND_TIMEOUT
                        ) -> Tuple[InProcessChannel, InProcessChannel]:
    """
    Create two channels wired to each other through two bounded queues.

    Args:
        capacity: Bound of each direction's queue
        first_token: Cancellation token for the first channel's thread
        second_token: Cancellation token for the second channel's thread
        send_timeout: Seconds a send waits for room before dropping

    Returns:
        (first, second) channels; what one sends the other receives
    """
    if capacity <= 0:
        raise ValueError(f"Queue capacity must be positive, got {capacity}")

    first_inbound: queue.Queue = queue.Queue(maxsize=capacity)
    second_inbound: queue.Queue = queue.Queue(maxsize=capacity)

    first = InProcessChannel(first_inbound, second_inbound, first_token, send_timeout)
    second = InProcessChannel(second_inbound, first_inbound, second_token, send_timeout)
    return first, second
