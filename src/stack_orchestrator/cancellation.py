"""Cooperative cancellation for blocking waits."""

import threading

from loguru import logger


class CancellationToken:
    """A shared abort signal for sleeps between polls.

    Waiting on the token sleeps for the full interval unless the token is
    cancelled, in which case the sleep ends immediately. One token can be
    shared by any number of gates and coordinator lanes.
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        """Signal cancellation to every current and future waiter."""
        if not self._event.is_set():
            logger.info("Cancellation requested: {}", reason)
            self.reason = reason
        self._event.set()

    def wait(self, seconds: float) -> bool:
        """Sleep for ``seconds`` or until cancelled.

        Returns:
            True if the token was cancelled, False if the full interval elapsed
        """
        return self._event.wait(max(seconds, 0.0))
