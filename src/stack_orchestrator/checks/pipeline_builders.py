"""Pipeline builders for stack start-up.

Each ``add_*_stage`` function appends one critical stage gating on a single
service, so the stack comes up in dependency order: search backend, then
the ingestion server, then the API.
"""

from stack_orchestrator.cancellation import CancellationToken
from stack_orchestrator.constants import STAGE_API, STAGE_INDEX, STAGE_INGESTION, STAGE_SEARCH
from stack_orchestrator.endpoints import api_endpoint, index_endpoint, ingestion_endpoint, search_endpoint
from stack_orchestrator.gate import ServiceGate
from stack_orchestrator.readiness_pipeline import ReadinessPipeline, ReadinessPipelineBuilder
from stack_orchestrator.settings import Settings, get_settings

from .gate_check import GateCheck


def _gate_check(gate: ServiceGate, endpoint, settings: Settings, token: CancellationToken | None) -> GateCheck:
    return GateCheck(gate, endpoint, timeout=settings.timeout, interval=settings.interval, token=token)


def add_search_stage(
    builder: ReadinessPipelineBuilder,
    gate: ServiceGate,
    settings: Settings,
    token: CancellationToken | None = None,
) -> ReadinessPipelineBuilder:
    """Add the search backend cluster health stage."""
    builder.add_stage(
        name=STAGE_SEARCH,
        description="Search backend cluster health",
        is_critical=True,
    ).add_check(_gate_check(gate, search_endpoint(settings), settings, token))
    return builder


def add_ingestion_stage(
    builder: ReadinessPipelineBuilder,
    gate: ServiceGate,
    settings: Settings,
    token: CancellationToken | None = None,
) -> ReadinessPipelineBuilder:
    """Add the ingestion server health stage."""
    builder.add_stage(
        name=STAGE_INGESTION,
        description="Ingestion server health",
        is_critical=True,
    ).add_check(_gate_check(gate, ingestion_endpoint(settings), settings, token))
    return builder


def add_api_stage(
    builder: ReadinessPipelineBuilder,
    gate: ServiceGate,
    settings: Settings,
    token: CancellationToken | None = None,
) -> ReadinessPipelineBuilder:
    """Add the media API health stage."""
    builder.add_stage(
        name=STAGE_API,
        description="Media API health",
        is_critical=True,
    ).add_check(_gate_check(gate, api_endpoint(settings), settings, token))
    return builder


def add_index_stage(
    builder: ReadinessPipelineBuilder,
    gate: ServiceGate,
    settings: Settings,
    indices: list[str],
    token: CancellationToken | None = None,
) -> ReadinessPipelineBuilder:
    """Add a stage waiting for search indices to exist."""
    stage = builder.add_stage(
        name=STAGE_INDEX,
        description="Search index presence",
        is_critical=True,
    )
    for index in indices:
        stage.add_check(_gate_check(gate, index_endpoint(index, settings), settings, token))
    return builder


def build_startup_pipeline(
    gate: ServiceGate,
    settings: Settings | None = None,
    include_search: bool = True,
    indices: list[str] | None = None,
    token: CancellationToken | None = None,
) -> ReadinessPipeline:
    """Build the stack start-up pipeline.

    Args:
        gate: Gate shared by all checks; records which services are ready
        settings: Settings providing URLs, timeout and interval
        include_search: Gate on the search backend before the ingestion server
        indices: Search indices that must exist once the services are up
        token: Optional cancellation token shared by all waits

    Returns:
        Configured pipeline ready to execute
    """
    settings = settings or get_settings()
    builder = ReadinessPipelineBuilder()

    if include_search:
        add_search_stage(builder, gate, settings, token)
    add_ingestion_stage(builder, gate, settings, token)
    add_api_stage(builder, gate, settings, token)
    if indices:
        add_index_stage(builder, gate, settings, indices, token)

    return builder.build()
