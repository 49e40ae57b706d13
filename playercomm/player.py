"""
Turn-taking message exchange between two players.

The initiator sends the seed message; from then on each player waits for a
message and answers with the received text followed by its own running send
count. Both players stop once either count passes the configured maximum.
The initiator also stops, without answering, as soon as it has received the
maximum, so the last round is asymmetric: the responder's final receive sees
end-of-stream (or blocks until cancelled) instead of another message.

The engine only talks to a MessageChannel and behaves the same over every
transport.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .channel.base import MessageChannel
from .utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES = 10
DEFAULT_PAUSE = 0.1

CAUSE_LIMIT_REACHED = "limit-reached"
CAUSE_END_OF_STREAM = "end-of-stream"
CAUSE_CANCELLED = "cancelled"


class Role(Enum):
    INITIATOR = "initiator"
    RESPONDER = "responder"


@dataclass
class ExchangeResult:
    """Final counts of one player's run and why it stopped."""
    player_id: str
    sent_count: int
    received_count: int
    cause: str


class Player:
    """
    One side of the two-party exchange.

    A player runs its protocol exactly once. Nothing raised inside the
    exchange escapes :meth:`run`; it ends the run with an ``error: ...``
    cause instead.
    """

    def __init__(self, player_id: str, channel: MessageChannel, is_initiator: bool,
                 initial_message: Optional[str] = None,
                 max_messages: int = DEFAULT_MAX_MESSAGES,
                 pause: float = DEFAULT_PAUSE,
                 token: Optional[CancellationToken] = None):
        """
        Initialize a player.

        Args:
            player_id: Identifier used in every status line
            channel: Channel this player exclusively sends and receives on
            is_initiator: True if this player sends the first message
            initial_message: Seed message (only sent by the initiator)
            max_messages: Upper bound on both sent and received counts
            pause: Seconds to pause after each reply
            token: Cancellation token; share it with an in-process channel
                so that shutdown() also unblocks a pending receive
        """
        self.player_id = player_id
        self.channel = channel
        self.role = Role.INITIATOR if is_initiator else Role.RESPONDER
        self.initial_message = initial_message
        self.max_messages = max_messages
        self.pause = pause
        self.token = token if token is not None else CancellationToken()

        self.sent_count = 0
        self.received_count = 0
        self.result: Optional[ExchangeResult] = None
        self._started = False

    @property
    def is_initiator(self) -> bool:
        return self.role is Role.INITIATOR

    def shutdown(self) -> None:
        """Ask a running exchange to stop before its next receive."""
        self.token.cancel()

    def run(self) -> ExchangeResult:
        """
        Drive the exchange until a count limit, end-of-stream or failure.

        Returns:
            Final counts and the cause of termination

        Raises:
            RuntimeError: If this player has already run
        """
        if self._started:
            raise RuntimeError(f"Player {self.player_id} has already run")
        self._started = True

        cause = CAUSE_LIMIT_REACHED
        try:
            logger.info(f"[{self.player_id}] Started. (Initiator={self.is_initiator})")

            if self.is_initiator:
                self.sent_count += 1
                self.channel.send(self.initial_message)
                logger.info(f"[{self.player_id}] Sent: {self.initial_message} "
                            f"(Sent Count: {self.sent_count})")

            while self.sent_count <= self.max_messages and self.received_count <= self.max_messages:
                if self.token.cancelled:
                    cause = CAUSE_CANCELLED
                    break

                message = self.channel.receive()
                self.received_count += 1
                logger.info(f"[{self.player_id}] Received: {message} "
                            f"(Received Count: {self.received_count})")

                if message is None:
                    cause = CAUSE_CANCELLED if self.token.cancelled else CAUSE_END_OF_STREAM
                    break
                if self.is_initiator and self.received_count >= self.max_messages:
                    break

                self.sent_count += 1
                reply = f"{message}{self.sent_count}"
                self.channel.send(reply)
                logger.info(f"[{self.player_id}] Sent: {reply} (Sent Count: {self.sent_count})")

                if self.token.wait(self.pause):
                    cause = CAUSE_CANCELLED
                    break

            logger.info(f"[{self.player_id}] Completed (Sent: {self.sent_count}, "
                        f"Received: {self.received_count}, cause: {cause})")

        except Exception as e:
            cause = f"error: {e}"
            logger.error(f"[{self.player_id}] Stopped with exception: {e} "
                         f"(sent={self.sent_count}, received={self.received_count})")

        self.result = ExchangeResult(self.player_id, self.sent_count, self.received_count, cause)
        return self.result

    def get_stats(self) -> dict:
        """Get exchange statistics."""
        return {
            'player_id': self.player_id,
            'role': self.role.value,
            'sent_count': self.sent_count,
            'received_count': self.received_count,
            'max_messages': self.max_messages,
            'cause': self.result.cause if self.result else None,
        }

    def __repr__(self):
        return (f"Player({self.player_id!r}, {self.role.value}, "
                f"sent={self.sent_count}, received={self.received_count})")
