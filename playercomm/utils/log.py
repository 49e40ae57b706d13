"""
Logging setup shared by the command-line entry points.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(threadName)s] %(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """
    Configure root logging once for a command-line run.

    Args:
        verbose: Log at DEBUG instead of INFO
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
