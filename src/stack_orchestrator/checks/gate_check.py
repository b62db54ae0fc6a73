"""Readiness check backed by a service gate."""

from loguru import logger

from stack_orchestrator.cancellation import CancellationToken
from stack_orchestrator.gate import ServiceGate
from stack_orchestrator.models import GateOutcome, GateState, ServiceEndpoint
from stack_orchestrator.readiness_pipeline import ReadinessCheck, ReadinessCheckResult


class GateCheck(ReadinessCheck):
    """Wait for a service endpoint through a ``ServiceGate``.

    The check passes once the gate resolves to READY; a timed out or
    cancelled gate fails the check. The ``GateOutcome`` is kept on the check
    so callers can tell a timeout from a cancellation.
    """

    def __init__(
        self,
        gate: ServiceGate,
        endpoint: ServiceEndpoint,
        timeout: float,
        interval: float,
        token: CancellationToken | None = None,
        name: str | None = None,
        is_critical: bool = True,
    ):
        """Initialize the gate check.

        Args:
            gate: Gate used to wait for the endpoint
            endpoint: Endpoint to wait for
            timeout: Maximum wait in seconds
            interval: Spacing between probes in seconds
            token: Optional cancellation token
            name: Check name; defaults to ``wait_for_<endpoint name>``
            is_critical: Whether failure should stop the pipeline stage
        """
        super().__init__(name or f"wait_for_{endpoint.name}", is_critical)
        self.gate = gate
        self.endpoint = endpoint
        self.timeout = timeout
        self.interval = interval
        self.token = token
        self.outcome: GateOutcome | None = None

    def _execute(self) -> ReadinessCheckResult:
        logger.info("Waiting for {} to be ready", self.endpoint)
        self.outcome = self.gate.wait_ready(self.endpoint, self.timeout, self.interval, self.token)

        details = {
            "url": self.endpoint.url,
            "state": self.outcome.state.value,
            "attempts": self.outcome.attempts,
            "elapsed_s": round(self.outcome.elapsed, 3),
        }
        if self.outcome.last_probe is not None:
            details["status_code"] = self.outcome.last_probe.status_code
            if self.outcome.last_probe.error:
                details["error"] = self.outcome.last_probe.error

        if self.outcome.state == GateState.READY:
            return self.success(f"{self.endpoint.name} is ready", details)
        if self.outcome.state == GateState.CANCELLED:
            return self.failed(f"Waiting for {self.endpoint.name} was cancelled", details)
        return self.failed(f"{self.endpoint.name} did not become ready within {self.timeout:g}s", details)
