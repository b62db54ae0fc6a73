"""Readiness pipeline runner for CLI operations."""

import typer
from rich.markup import escape

from stack_orchestrator.checks import GateCheck
from stack_orchestrator.constants import EXIT_CANCELLED, EXIT_FAILED, EXIT_TIMED_OUT
from stack_orchestrator.models import GateState
from stack_orchestrator.readiness_pipeline import CheckStatus, ReadinessPipeline

from .utils import console


def _exit_code(pipeline: ReadinessPipeline) -> int:
    """Pick the exit code of the first gate that did not become ready."""
    for stage in pipeline.stages:
        for check in stage.checks:
            if isinstance(check, GateCheck) and check.outcome is not None and not check.outcome.ready:
                return EXIT_CANCELLED if check.outcome.state == GateState.CANCELLED else EXIT_TIMED_OUT
    return EXIT_FAILED


def run_readiness_checks(pipeline: ReadinessPipeline, operation_name: str) -> None:
    """Run a readiness pipeline and display its results.

    Args:
        pipeline: The readiness pipeline to execute
        operation_name: Name of the operation for display

    Raises:
        typer.Exit: If any readiness check fails; 124 when a service timed
            out, 130 when the wait was cancelled, 1 otherwise
    """
    console.print(f"[bold]Running {operation_name} readiness checks...[/bold]\n")

    result = pipeline.execute()

    if result.overall_status != CheckStatus.SUCCESS:
        console.print(f"\n[red]{operation_name.capitalize()} readiness checks failed![/red]\n")
        for check_result in result.failed_check_results():
            stage = escape(f"[{check_result.stage_name}]")
            console.print(f"  {stage} {check_result.check_name}: {escape(check_result.message)}")
        raise typer.Exit(_exit_code(pipeline))

    console.print(f"[green]All {operation_name} readiness checks passed![/green]\n")
