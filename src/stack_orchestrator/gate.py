"""Readiness gates for named services.

A ``ServiceGate`` composes a ``Probe`` with the ``RetryLoop``: it blocks
until the endpoint reports ready, the time budget runs out or the wait is
cancelled, and always resolves to a terminal ``GateOutcome``.

Progress is reported through an injected ``GateObserver`` so that the core
stays free of presentation concerns; the CLI plugs in a console reporter.

State machine:
    WAITING -> READY | TIMED_OUT | CANCELLED (terminal, never back to WAITING)
"""

import threading
from typing import Protocol

from loguru import logger

from .cancellation import CancellationToken
from .exceptions import OperationCancelled, WaitTimeoutError
from .models import GateOutcome, GateState, ProbeResult, ServiceEndpoint
from .probe import Probe
from .retry_loop import RetryLoop

DEFAULT_GATE_TIMEOUT = 300.0
DEFAULT_GATE_INTERVAL = 5.0


class GateObserver(Protocol):
    """Receives progress notifications from a gate."""

    def on_waiting(self, endpoint: ServiceEndpoint, probe_result: ProbeResult, attempt: int, elapsed: float) -> None: ...

    def on_outcome(self, outcome: GateOutcome) -> None: ...


class LoggingGateObserver:
    """Default observer writing gate progress to the log."""

    def on_waiting(self, endpoint: ServiceEndpoint, probe_result: ProbeResult, attempt: int, elapsed: float) -> None:
        reason = probe_result.error or f"status {probe_result.status_code}"
        logger.info("Waiting for {} to be healthy... (attempt {}, {:.0f}s, {})", endpoint.name, attempt, elapsed, reason)

    def on_outcome(self, outcome: GateOutcome) -> None:
        if outcome.ready:
            logger.info("{} is ready after {} attempts ({:.1f}s)", outcome.service_name, outcome.attempts, outcome.elapsed)
        else:
            logger.warning("{} did not become ready: {}", outcome.service_name, outcome.state.value)


class ServiceGate:
    """Blocks until named services report ready.

    Args:
        probe: Probe used for each attempt
        observer: Progress observer; logs through loguru when omitted
        retry_loop: Polling primitive; injectable to control the clock in tests
    """

    def __init__(
        self,
        probe: Probe,
        observer: GateObserver | None = None,
        retry_loop: RetryLoop | None = None,
    ):
        self.probe = probe
        self.observer = observer or LoggingGateObserver()
        self.retry_loop = retry_loop or RetryLoop()
        self._outcomes: dict[str, GateOutcome] = {}
        self._lock = threading.Lock()

    def wait_ready(
        self,
        endpoint: ServiceEndpoint,
        timeout: float = DEFAULT_GATE_TIMEOUT,
        interval: float = DEFAULT_GATE_INTERVAL,
        token: CancellationToken | None = None,
    ) -> GateOutcome:
        """Wait until ``endpoint`` is ready.

        Args:
            endpoint: Endpoint to gate on
            timeout: Maximum wait in seconds
            interval: Spacing between probes in seconds
            token: Optional cancellation token

        Returns:
            GateOutcome in a terminal state. For TIMED_OUT and CANCELLED the
            outcome carries the underlying exception; call
            ``outcome.raise_for_state()`` to propagate it.
        """
        last_probe: ProbeResult | None = None
        attempts = 0
        start = self.retry_loop.clock()
        logger.debug("Gating on {} (timeout={}s, interval={}s)", endpoint, timeout, interval)

        def check() -> bool:
            nonlocal last_probe, attempts
            attempts += 1
            last_probe = self.probe.probe(endpoint)
            return last_probe.ready

        def on_attempt(attempt: int, elapsed: float) -> None:
            self.observer.on_waiting(endpoint, last_probe, attempt, elapsed)

        try:
            result = self.retry_loop.await_condition(
                check,
                timeout=timeout,
                interval=interval,
                token=token,
                on_attempt=on_attempt,
                description=endpoint.name,
            )
            outcome = GateOutcome(
                service_name=endpoint.name,
                state=GateState.READY,
                elapsed=result.elapsed,
                attempts=result.attempts,
                last_probe=last_probe,
            )
        except WaitTimeoutError as e:
            outcome = GateOutcome(
                service_name=endpoint.name,
                state=GateState.TIMED_OUT,
                elapsed=e.elapsed,
                attempts=e.attempts,
                last_probe=last_probe,
                error=e,
            )
        except OperationCancelled as e:
            outcome = GateOutcome(
                service_name=endpoint.name,
                state=GateState.CANCELLED,
                elapsed=self.retry_loop.clock() - start,
                attempts=attempts,
                last_probe=last_probe,
                error=e,
            )

        with self._lock:
            self._outcomes[endpoint.name] = outcome
        self.observer.on_outcome(outcome)
        return outcome

    def require_ready(
        self,
        endpoint: ServiceEndpoint,
        timeout: float = DEFAULT_GATE_TIMEOUT,
        interval: float = DEFAULT_GATE_INTERVAL,
        token: CancellationToken | None = None,
    ) -> GateOutcome:
        """Like ``wait_ready`` but raise unless the endpoint became ready.

        Raises:
            WaitTimeoutError: The endpoint did not become ready in time
            OperationCancelled: The wait was cancelled
        """
        return self.wait_ready(endpoint, timeout, interval, token).raise_for_state()

    def is_ready(self, service_name: str) -> bool:
        """Return True if the last gate on ``service_name`` resolved to READY."""
        with self._lock:
            outcome = self._outcomes.get(service_name)
        return outcome is not None and outcome.ready

    def last_outcome(self, service_name: str) -> GateOutcome | None:
        """Return the last outcome recorded for ``service_name``."""
        with self._lock:
            return self._outcomes.get(service_name)
