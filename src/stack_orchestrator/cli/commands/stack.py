"""Stack commands: container start-up and readiness gating."""

from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.markup import escape

from stack_orchestrator.checks import build_startup_pipeline
from stack_orchestrator.compose import ComposeRunner
from stack_orchestrator.constants import EXIT_FAILED, SERVICE_API, SERVICE_INGESTION, SERVICE_SEARCH
from stack_orchestrator.endpoints import all_service_endpoints, index_endpoint
from stack_orchestrator.exceptions import ComposeError
from stack_orchestrator.models import MediaModel
from stack_orchestrator.probe import HealthProbe
from stack_orchestrator.services import create_gate
from stack_orchestrator.settings import get_settings

from ..runner import run_readiness_checks
from ..utils import ConsoleGateReporter, cancellation_scope, console, exit_code_for_gate
from .index import lifecycle_session

app = typer.Typer(help="Service stack operations")

SERVICE_ARGUMENT = typer.Argument(
    ...,
    help=f"Service name: {SERVICE_SEARCH}, {SERVICE_INGESTION} or {SERVICE_API}",
    metavar="<service>",
)  # fmt: skip


def _endpoint(service: str):
    endpoints = all_service_endpoints()
    if service not in endpoints:
        console.print(f"[red]Unknown service '{service}'. Choose one of: {', '.join(endpoints)}[/red]")
        raise typer.Exit(EXIT_FAILED)
    return endpoints[service]


@contextmanager
def _compose() -> Iterator[ComposeRunner]:
    try:
        yield ComposeRunner()
    except ComposeError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(EXIT_FAILED) from None


@app.command()
def health(service: str = SERVICE_ARGUMENT):
    """Probe a service once and print the answer.

    Examples:
        stack-orchestrator stack health ingestion_server
    """
    endpoint = _endpoint(service)
    with HealthProbe(timeout=get_settings().probe_timeout) as probe:
        result = probe.probe(endpoint)

    answer = result.status_code if result.status_code is not None else result.error
    colour = "green" if result.ready else "red"
    console.print(f"[{colour}]{endpoint.name}: {answer}[/{colour}]")
    if not result.ready:
        raise typer.Exit(EXIT_FAILED)


@app.command()
def wait(service: str = SERVICE_ARGUMENT):
    """Wait for a service to be healthy.

    Examples:
        stack-orchestrator stack wait api
        stack-orchestrator --timeout 60 stack wait search
    """
    endpoint = _endpoint(service)
    settings = get_settings()
    with cancellation_scope() as token:
        outcome = create_gate(observer=ConsoleGateReporter()).wait_ready(
            endpoint, timeout=settings.timeout, interval=settings.interval, token=token
        )
    raise typer.Exit(exit_code_for_gate(outcome))


@app.command("wait-index")
def wait_index(index: str = typer.Argument("image", help="Search index name", metavar="<index>")):
    """Wait for a search index to exist.

    Examples:
        stack-orchestrator stack wait-index image-init
    """
    settings = get_settings()
    with cancellation_scope() as token:
        outcome = create_gate(observer=ConsoleGateReporter()).wait_ready(
            index_endpoint(index), timeout=settings.timeout, interval=settings.interval, token=token
        )
    raise typer.Exit(exit_code_for_gate(outcome))


@app.command()
def up(
    build: bool = typer.Option(False, "--build", help="Build images before starting containers"),
    recreate: bool = typer.Option(False, "--recreate", help="Force recreation of containers"),
    wait_search: bool = typer.Option(True, "--search/--no-search", help="Also gate on the search backend"),
    indices: list[str] = typer.Option(
        None,
        "--index",
        help="Search index that must exist once the services are up (repeatable)",
        metavar="<index>",
    ),
):
    """Bring all services up and wait until they are healthy.

    Services are gated in dependency order: search backend, ingestion
    server, API, then the requested search indices. Anything that does not
    become ready aborts the start-up.

    Examples:
        stack-orchestrator stack up
        stack-orchestrator stack up --build --recreate
        stack-orchestrator stack up --index image --index audio
    """
    flags = [flag for flag, enabled in (("--build", build), ("--force-recreate", recreate)) if enabled]
    with _compose() as compose:
        compose.up(flags)

    with cancellation_scope() as token:
        gate = create_gate(observer=ConsoleGateReporter())
        pipeline = build_startup_pipeline(gate, include_search=wait_search, indices=indices, token=token)
        run_readiness_checks(pipeline, "stack start-up")

    console.print("[bold green]Stack is up![/bold green]")


@app.command()
def down(volumes: bool = typer.Option(False, "--volumes", "-v", help="Also remove volumes")):
    """Take all services down.

    Examples:
        stack-orchestrator stack down -v
    """
    with _compose() as compose:
        compose.down(["-v"] if volumes else [])


@app.command()
def init(
    suffix: str = typer.Option("init", help="Suffix of the indices built from the sample data", metavar="<suffix>"),
):
    """Bring the stack up and build the primary indices of every media model.

    For each model the upstream data is ingested into ``<model>-<suffix>``,
    which is then promoted to the ``<model>`` alias. Models are processed
    concurrently, each in its own lane.

    Examples:
        stack-orchestrator stack init
    """
    up(build=False, recreate=False, wait_search=True, indices=[])

    with lifecycle_session() as coordinator:
        jobs = [coordinator.ingest_upstream(model, suffix) for model in MediaModel]
        for job in jobs:
            job.result()
        for model in MediaModel:
            coordinator.promote(model, suffix, model.value)
            console.print(f"[green]{model.value} alias now points at {model.value}-{suffix}[/green]")

    console.print("[bold green]Stack initialized![/bold green]")
