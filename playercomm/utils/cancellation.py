"""
Cooperative cancellation for blocking channel waits.

Python threads cannot be interrupted from outside, so each execution unit
carries a token instead. Blocking waits poll the token in short slices and
leave it set once observed, so callers further up still see the request.
"""

import threading
from typing import Optional

# Granularity of blocking waits that must notice cancellation.
POLL_INTERVAL = 0.05


class CancellationToken:
    """A one-way flag: once cancelled, it stays cancelled."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation of every wait observing this token."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Sleep up to ``timeout`` seconds, waking early on cancellation.

        Returns:
            True if the token was cancelled
        """
        return self._event.wait(timeout)

    def __repr__(self):
        state = "cancelled" if self.cancelled else "active"
        return f"CancellationToken({state})"
