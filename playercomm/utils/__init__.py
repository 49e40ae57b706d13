"""
Utility functions and helpers for player communication.
"""

from .cancellation import CancellationToken
from .log import configure_logging

__all__ = [
    'CancellationToken',
    'configure_logging'
]
