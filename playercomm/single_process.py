"""
Two players exchanging messages as two threads of one process.

Usage:
    python -m playercomm.single_process [MESSAGE] [--config FILE] [--verbose]
"""

import argparse
import logging
import sys
import threading
import time
from typing import List, Optional, Tuple

from .channel import create_channel_pair
from .config import CommunicationConfig, ConfigError
from .player import DEFAULT_PAUSE, ExchangeResult, Player
from .utils.cancellation import CancellationToken
from .utils.log import configure_logging

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Chit_Chat"
RESPONDER_GRACE = 1.0


def run_single_process(config: CommunicationConfig, initial_message: str,
                       pause: float = DEFAULT_PAUSE,
                       responder_grace: float = RESPONDER_GRACE
                       ) -> Tuple[ExchangeResult, ExchangeResult]:
    """
    Run initiator and responder threads over one in-process queue pair.

    The initiator stops without a final reply, which leaves the responder
    waiting on one more receive. After the initiator finishes the responder
    gets ``responder_grace`` seconds, then it is cancelled.

    Returns:
        (initiator result, responder result)
    """
    max_messages = config.max_message_count
    initiator_token = CancellationToken()
    responder_token = CancellationToken()
    initiator_channel, responder_channel = create_channel_pair(
        config.queue_capacity, initiator_token, responder_token
    )

    initiator = Player("Player1", initiator_channel, True, initial_message,
                       max_messages=max_messages, pause=pause, token=initiator_token)
    responder = Player("Player2", responder_channel, False, None,
                       max_messages=max_messages, pause=pause, token=responder_token)

    initiator_thread = threading.Thread(target=initiator.run, name="Player1-Thread", daemon=True)
    responder_thread = threading.Thread(target=responder.run, name="Player2-Thread", daemon=True)

    initiator_thread.start()
    responder_thread.start()

    try:
        initiator_thread.join()
        time.sleep(0.1)
        responder_thread.join(responder_grace)
    finally:
        if responder_thread.is_alive():
            logger.debug("Responder still waiting for a message, cancelling it")
            responder.shutdown()
            responder_thread.join()
        initiator_channel.close()
        responder_channel.close()

    return initiator.result, responder.result


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='playercomm-single',
        description='Two players exchanging messages within one process'
    )
    parser.add_argument('message', nargs='?', default=None,
                        help=f'Seed message sent by the initiator (default: {DEFAULT_MESSAGE})')
    parser.add_argument('--config', type=str,
                        help='Properties file (default: $PLAYERCOMM_CONFIG or packaged defaults)')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for same-process mode."""
    args = create_parser().parse_args(argv)
    configure_logging(args.verbose)

    initial_message = args.message or DEFAULT_MESSAGE

    try:
        config = CommunicationConfig.load(args.config)
        queue_capacity = config.queue_capacity
        max_messages = config.max_message_count
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.debug(f"Message limit per player: {max_messages}")

    print("=== Single Process Communication ===")
    print(f"Initial Message: {initial_message}")
    print(f"Queue Capacity: {queue_capacity}")

    run_single_process(config, initial_message)

    print("\n=== Completed ===")
    print("=== Communication Finished ===")
    return 0


if __name__ == '__main__':
    sys.exit(main())
