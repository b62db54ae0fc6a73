"""Construction of orchestrator components from settings.

Shared by the CLI commands so that every command wires probes, gates and
the coordinator the same way.
"""

from loguru import logger

from .cancellation import CancellationToken
from .endpoints import ingestion_endpoint
from .gate import GateObserver, ServiceGate
from .lifecycle import IndexLifecycleCoordinator, IngestionClient, RetryPolicy, TaskClient
from .probe import HealthProbe
from .settings import Settings, get_settings


def create_gate(settings: Settings | None = None, observer: GateObserver | None = None) -> ServiceGate:
    """Create a gate probing over HTTP with the configured probe timeout."""
    settings = settings or get_settings()
    return ServiceGate(HealthProbe(timeout=settings.probe_timeout), observer=observer)


def create_ingestion_client(settings: Settings | None = None) -> IngestionClient:
    settings = settings or get_settings()
    return IngestionClient(settings.ingestion_url, timeout=settings.probe_timeout * 6)


def create_coordinator(
    gate: ServiceGate,
    client: TaskClient,
    settings: Settings | None = None,
    token: CancellationToken | None = None,
) -> IndexLifecycleCoordinator:
    """Create a lifecycle coordinator talking to the configured ingestion server.

    The caller owns ``client`` and closes it after the coordinator has shut down.
    """
    settings = settings or get_settings()
    logger.debug("Creating lifecycle coordinator for {}", settings.ingestion_url)
    return IndexLifecycleCoordinator(
        client=client,
        gate=gate,
        ingestion=ingestion_endpoint(settings),
        retry_policy=RetryPolicy.from_settings(settings),
        job_poll_interval=settings.job_poll_interval,
        job_timeout=settings.job_timeout,
        token=token,
    )
