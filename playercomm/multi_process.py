"""
One player per process, talking to its peer over TCP.

The responder listens on the configured port; the initiator connects to the
configured host and port. Start the two processes in either order within the
initiator's retry window.

Usage:
    python -m playercomm.multi_process Player2 false
    python -m playercomm.multi_process Player1 true [MESSAGE]
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from .channel import ChannelError, NetworkChannel
from .config import CommunicationConfig, ConfigError
from .player import DEFAULT_PAUSE, ExchangeResult, Player
from .utils.log import configure_logging

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Chit_Chat"


def parse_flag(value: str) -> bool:
    """Only a case-insensitive 'true' counts as true."""
    return value.strip().lower() == "true"


def run_player_process(config: CommunicationConfig, player_id: str, is_initiator: bool,
                       initial_message: Optional[str] = None,
                       pause: float = DEFAULT_PAUSE) -> ExchangeResult:
    """
    Open the network channel for this side, run the player, release the channel.

    Raises:
        ChannelError: If the channel cannot be established
    """
    max_messages = config.max_message_count
    port = config.network_port

    if is_initiator:
        channel = NetworkChannel.connect(config.network_host, port)
    else:
        channel = NetworkChannel.listen(port)

    try:
        player = Player(player_id, channel, is_initiator, initial_message,
                        max_messages=max_messages, pause=pause)
        return player.run()
    finally:
        channel.close()


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='playercomm-multi',
        description='One player of a two-process message exchange over TCP',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Responder (listens):
  playercomm-multi Player2 false

  # Initiator (connects):
  playercomm-multi Player1 true "Hello"
        """
    )
    parser.add_argument('player_id', help='Identifier of this player')
    parser.add_argument('initiator', help="'true' to initiate (connect), anything else to respond (listen)")
    parser.add_argument('message', nargs='?', default=None,
                        help=f'Seed message, initiator only (default: {DEFAULT_MESSAGE})')
    parser.add_argument('--config', type=str,
                        help='Properties file (default: $PLAYERCOMM_CONFIG or packaged defaults)')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for separate-process mode."""
    args = create_parser().parse_args(argv)
    configure_logging(args.verbose)

    player_id = args.player_id
    is_initiator = parse_flag(args.initiator)
    initial_message = args.message or DEFAULT_MESSAGE

    try:
        config = CommunicationConfig.load(args.config)
        host = config.network_host
        port = config.network_port
        max_messages = config.max_message_count
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.debug(f"[{player_id}] Message limit: {max_messages}")

    print("=== Multi Process Communication ===")
    print(f"[{player_id}] PID: {os.getpid()}")
    print(f"[{player_id}] Role: {'Initiator(Client)' if is_initiator else 'Receiver(Server)'}")
    print(f"Transport: TCP/IP Socket ({host}:{port})")

    try:
        run_player_process(config, player_id, is_initiator, initial_message)
    except ChannelError as e:
        logger.error(f"[{player_id}] Could not establish channel: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
