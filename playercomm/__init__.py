"""
Player communication.

Two players take turns exchanging text messages, each reply carrying the
received text plus the sender's running message count. The players run as
two threads of one process (bounded in-process queues) or as two processes
connected over TCP; the exchange protocol is the same over both.

Basic Usage:
    >>> from playercomm import Player, create_channel_pair
    >>>
    >>> first, second = create_channel_pair(capacity=16)
    >>> initiator = Player("Player1", first, True, "Chit_Chat", max_messages=10)
    >>> responder = Player("Player2", second, False, max_messages=10)
    >>> # run each player in its own thread: threading.Thread(target=player.run)
"""

__version__ = "1.0.0"

from .channel import (
    MessageChannel,
    ChannelError,
    ChannelConnectionError,
    ChannelTimeoutError,
    ChannelCancelledError,
    InProcessChannel,
    NetworkChannel,
    create_channel_pair,
)
from .config import CommunicationConfig, ConfigError
from .player import Player, Role, ExchangeResult

__all__ = [
    'MessageChannel',
    'ChannelError',
    'ChannelConnectionError',
    'ChannelTimeoutError',
    'ChannelCancelledError',
    'InProcessChannel',
    'NetworkChannel',
    'create_channel_pair',
    'CommunicationConfig',
    'ConfigError',
    'Player',
    'Role',
    'ExchangeResult',
]
