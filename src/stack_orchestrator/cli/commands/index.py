"""Search index lifecycle commands."""

from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.markup import escape

from stack_orchestrator.endpoints import alias_endpoint, index_endpoint, ingestion_endpoint
from stack_orchestrator.exceptions import OperationCancelled, OrchestratorError, PreconditionError
from stack_orchestrator.lifecycle import IndexLifecycleCoordinator
from stack_orchestrator.models import LifecycleJobStatus, MediaModel
from stack_orchestrator.services import create_coordinator, create_gate, create_ingestion_client
from stack_orchestrator.settings import get_settings

from ..utils import ConsoleGateReporter, cancellation_scope, console, exit_code_for_error

app = typer.Typer(help="Search index lifecycle operations")

MODEL_ARGUMENT = typer.Argument(..., help="Media model: image or audio", metavar="<model>", case_sensitive=False)
SUFFIX_ARGUMENT = typer.Argument(..., help="Suffix of the index, e.g. 'init'", metavar="<suffix>")
ALIAS_ARGUMENT = typer.Argument(..., help="Alias pointing at the primary index", metavar="<alias>")


@contextmanager
def lifecycle_session() -> Iterator[IndexLifecycleCoordinator]:
    """Gate on the ingestion server and yield a coordinator.

    Orchestration failures are printed and turned into the matching exit
    code; Ctrl+C cancels every in-flight wait.

    Raises:
        typer.Exit: On any orchestration failure
    """
    settings = get_settings()
    with cancellation_scope() as token:
        gate = create_gate(observer=ConsoleGateReporter())
        try:
            gate.require_ready(ingestion_endpoint(), timeout=settings.timeout, interval=settings.interval, token=token)
            with create_ingestion_client() as client:
                with create_coordinator(gate, client, token=token) as coordinator:
                    yield coordinator
        except (OrchestratorError, OperationCancelled) as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            raise typer.Exit(exit_code_for_error(e)) from None


def adopt_existing_index(coordinator: IndexLifecycleCoordinator, model: MediaModel, suffix: str) -> None:
    """Record ``<model>-<suffix>`` as ingested if the search backend already has it."""
    result = coordinator.gate.probe.probe(index_endpoint(f"{model.value}-{suffix}"))
    if result.ready:
        coordinator.adopt_ingest(model, suffix)


def _report(status: LifecycleJobStatus) -> None:
    request = status.request
    console.print(
        f"[green]{request.action.value} of {request.model.value}"
        f"{f' {request.index_suffix!r}' if request.index_suffix else ''} {status.state.value}[/green]"
    )


@app.command("load-test-data")
def load_test_data(model: MediaModel = MODEL_ARGUMENT):
    """Load QA data into the QA indices of a media model.

    Examples:
        stack-orchestrator index load-test-data image
    """
    with lifecycle_session() as coordinator:
        _report(coordinator.load_test_data(model))


@app.command("ingest-upstream")
def ingest_upstream(
    model: MediaModel = MODEL_ARGUMENT,
    suffix: str = SUFFIX_ARGUMENT,
    promote_to: str = typer.Option(
        None,
        "--promote",
        help="Promote the new index to this alias once ingestion succeeded",
        metavar="<alias>",
    ),
):
    """Ingest upstream data into a new index and wait for it to finish.

    Examples:
        stack-orchestrator index ingest-upstream image init
        stack-orchestrator index ingest-upstream audio init --promote audio
    """
    with lifecycle_session() as coordinator:
        job = coordinator.ingest_upstream(model, suffix)
        _report(job.result())
        if promote_to:
            _report(coordinator.promote(model, suffix, promote_to))


@app.command()
def promote(model: MediaModel = MODEL_ARGUMENT, suffix: str = SUFFIX_ARGUMENT, alias: str = ALIAS_ARGUMENT):
    """Point an alias at an ingested index.

    The index must have been ingested, either by this run or by an earlier
    one that left it on the search backend.

    Examples:
        stack-orchestrator index promote image init image
    """
    with lifecycle_session() as coordinator:
        adopt_existing_index(coordinator, model, suffix)
        _report(coordinator.promote(model, suffix, alias))


@app.command()
def delete(model: MediaModel = MODEL_ARGUMENT, suffix: str = SUFFIX_ARGUMENT, alias: str = ALIAS_ARGUMENT):
    """Delete an index that is not the primary one.

    Examples:
        stack-orchestrator index delete image old image
    """
    with lifecycle_session() as coordinator:
        index = f"{model.value}-{suffix}"
        if suffix != alias and coordinator.gate.probe.probe(alias_endpoint(alias, index)).ready:
            raise PreconditionError(f"Refusing to delete '{suffix}': alias '{alias}' points at {index}")
        adopt_existing_index(coordinator, model, suffix)
        _report(coordinator.delete_index(model, suffix, alias))
