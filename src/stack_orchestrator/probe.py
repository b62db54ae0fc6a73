"""Single-shot readiness probes.

A probe issues exactly one request against a ``ServiceEndpoint`` and
classifies the answer. It never retries and never raises for network level
failures: connection refusal, timeouts and unexpected status codes all end
up in the returned ``ProbeResult``.
"""

from typing import Protocol

import httpx
from loguru import logger

from .models import ProbeResult, ServiceEndpoint

DEFAULT_PROBE_TIMEOUT = 5.0


class Probe(Protocol):
    """Anything able to check one endpoint once."""

    def probe(self, endpoint: ServiceEndpoint) -> ProbeResult: ...


class HealthProbe:
    """HTTP ``GET`` probe backed by an ``httpx.Client``.

    Args:
        timeout: Per-request timeout in seconds
        client: Optional client to reuse (e.g. with a mock transport in tests).
            When omitted the probe owns its client and ``close`` releases it.
    """

    def __init__(self, timeout: float = DEFAULT_PROBE_TIMEOUT, client: httpx.Client | None = None):
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout))

    def probe(self, endpoint: ServiceEndpoint) -> ProbeResult:
        """Check ``endpoint`` once and classify the result."""
        try:
            response = self._client.get(endpoint.url, timeout=self.timeout)
        except httpx.TimeoutException as e:
            logger.debug("Probe {} timed out: {}", endpoint.name, e)
            return ProbeResult(endpoint_name=endpoint.name, ready=False, error=f"timeout: {e}")
        except httpx.HTTPError as e:
            logger.debug("Probe {} failed: {}", endpoint.name, e)
            return ProbeResult(endpoint_name=endpoint.name, ready=False, error=f"{type(e).__name__}: {e}")

        ready = response.status_code == endpoint.expected_status
        if ready and endpoint.expected_text is not None:
            ready = endpoint.expected_text in response.text

        logger.trace("Probe {} answered {} (ready={})", endpoint.name, response.status_code, ready)
        return ProbeResult(endpoint_name=endpoint.name, ready=ready, status_code=response.status_code)

    def close(self) -> None:
        """Close the underlying client if this probe created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HealthProbe":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
