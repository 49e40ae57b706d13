"""
Channel layer for player communication.

This module provides the transports a player exchanges messages through:
- The MessageChannel capability (send, receive, close)
- TCP socket channel for players in separate processes
- Bounded queue channel for players in the same process
"""

from .base import (
    MessageChannel,
    ChannelError,
    ChannelConnectionError,
    ChannelTimeoutError,
    ChannelCancelledError,
)
from .in_process import InProcessChannel, create_channel_pair
from .network import NetworkChannel, find_free_port

__all__ = [
    'MessageChannel',
    'ChannelError',
    'ChannelConnectionError',
    'ChannelTimeoutError',
    'ChannelCancelledError',
    'InProcessChannel',
    'create_channel_pair',
    'NetworkChannel',
    'find_free_port',
]
