"""
Channel capability shared by every transport.

A channel is a duplex text link between exactly two players. Both transport
bindings (TCP socket and in-process queues) satisfy the same structural
protocol, so the player engine never needs to know which one it drives.
"""

from typing import Optional, Protocol, runtime_checkable


class ChannelError(Exception):
    """Base class for channel failures that reach the caller."""
    pass


class ChannelConnectionError(ChannelError):
    """The channel could not be established (port in use, retries exhausted)."""
    pass


class ChannelTimeoutError(ChannelError):
    """An accept or connect step did not complete within its timeout."""
    pass


class ChannelCancelledError(ChannelError):
    """The owning execution unit was cancelled during a blocking wait."""
    pass


@runtime_checkable
class MessageChannel(Protocol):
    """Send, receive and release text messages over some transport."""

    def send(self, message: Optional[str]) -> None:
        """Send one message. ``None`` is accepted and ignored."""
        ...

    def receive(self) -> Optional[str]:
        """Block for the next message; ``None`` means no more messages."""
        ...

    def close(self) -> None:
        """Release transport resources. Safe to call more than once."""
        ...
