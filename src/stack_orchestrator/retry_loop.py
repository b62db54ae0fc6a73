"""Bounded-time polling primitive.

``RetryLoop`` wraps a tenacity ``Retrying`` controller for fixed-interval
polling: it evaluates a condition and sleeps the full interval through a
``CancellationToken`` until the condition holds. It gives up once the time
budget is exhausted or the wait is cancelled. Elapsed time is measured on
an injectable clock so that tests never sleep.

Timing:
    The first check runs immediately. A condition first holding on check
    ``N + 1`` therefore completes after ``N * interval`` (plus the time spent
    in the checks themselves). After a failed check, the loop gives up once
    the elapsed time has reached ``timeout``, so a timeout always reports
    ``elapsed >= timeout``.
"""

import time
from collections.abc import Callable

from loguru import logger
from tenacity import RetryCallState, Retrying, retry_if_result, wait_fixed

from .cancellation import CancellationToken
from .exceptions import OperationCancelled, WaitTimeoutError
from .models import WaitResult

AttemptHook = Callable[[int, float], None]


class RetryLoop:
    """Fixed-interval polling with timeout and cooperative cancellation.

    Args:
        clock: Monotonic clock returning seconds; injectable for tests
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock

    def await_condition(
        self,
        check: Callable[[], bool],
        timeout: float,
        interval: float,
        token: CancellationToken | None = None,
        on_attempt: AttemptHook | None = None,
        description: str = "condition",
    ) -> WaitResult:
        """Poll ``check`` until it returns True.

        Args:
            check: Condition to evaluate; must not block longer than needed
            timeout: Maximum cumulative wait in seconds
            interval: Sleep between two checks in seconds
            token: Cancellation token; a fresh, never-cancelled token when omitted
            on_attempt: Called as ``on_attempt(attempt, elapsed)`` after each failed check
            description: What is being waited for, used in logs and errors

        Returns:
            WaitResult with the elapsed time and number of checks

        Raises:
            WaitTimeoutError: The condition did not hold within ``timeout``
            OperationCancelled: The token was cancelled before the condition held
            ValueError: ``timeout`` is negative or ``interval`` is not positive
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        if timeout < 0:
            raise ValueError(f"timeout must not be negative, got {timeout}")

        token = token or CancellationToken()
        if token.cancelled:
            logger.debug("Wait for {} cancelled before the first check", description)
            raise OperationCancelled(description)

        start = self.clock()
        attempts = 0

        def elapsed() -> float:
            return self.clock() - start

        def attempt() -> bool:
            nonlocal attempts
            attempts += 1
            return check()

        def timed_out(retry_state: RetryCallState) -> bool:
            return elapsed() >= timeout

        def report(retry_state: RetryCallState) -> None:
            if on_attempt is not None:
                on_attempt(retry_state.attempt_number, elapsed())

        def give_up(retry_state: RetryCallState) -> bool:
            logger.warning("Timed out waiting for {} after {:.1f}s", description, elapsed())
            raise WaitTimeoutError(description, elapsed(), retry_state.attempt_number)

        def sleep(seconds: float) -> None:
            if token.wait(seconds):
                logger.debug("Wait for {} cancelled after {} attempts", description, attempts)
                raise OperationCancelled(description)

        retrying = Retrying(
            stop=timed_out,
            wait=wait_fixed(interval),
            retry=retry_if_result(lambda satisfied: not satisfied),
            after=report,
            retry_error_callback=give_up,
            sleep=sleep,
        )
        retrying(attempt)

        logger.debug("{} satisfied after {} attempts in {:.1f}s", description, attempts, elapsed())
        return WaitResult(elapsed=elapsed(), attempts=attempts)
