"""CLI utility functions shared across commands.

This module contains:
- The console reporter plugged into service gates
- Mapping of terminal outcomes to process exit codes
- Cancellation on Ctrl+C
"""

from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console

from stack_orchestrator.cancellation import CancellationToken
from stack_orchestrator.constants import EXIT_CANCELLED, EXIT_FAILED, EXIT_OK, EXIT_TIMED_OUT
from stack_orchestrator.exceptions import OperationCancelled, WaitTimeoutError
from stack_orchestrator.models import GateOutcome, GateState, ProbeResult, ServiceEndpoint

console = Console()


class ConsoleGateReporter:
    """Gate observer printing progress to the console."""

    def __init__(self, output: Console | None = None):
        self.output = output or console

    def on_waiting(self, endpoint: ServiceEndpoint, probe_result: ProbeResult, attempt: int, elapsed: float) -> None:
        self.output.print(f"[dim]Waiting for {endpoint.name} to be healthy... ({elapsed:.0f}s)[/dim]")

    def on_outcome(self, outcome: GateOutcome) -> None:
        if outcome.ready:
            self.output.print(f"[green]{outcome.service_name} is ready[/green] [dim]({outcome.attempts} attempts)[/dim]")
        elif outcome.state == GateState.CANCELLED:
            self.output.print(f"[yellow]Waiting for {outcome.service_name} cancelled[/yellow]")
        else:
            self.output.print(f"[red]Timed out waiting for {outcome.service_name}[/red]")


def exit_code_for_gate(outcome: GateOutcome) -> int:
    """Map a gate outcome to a process exit code."""
    if outcome.state == GateState.READY:
        return EXIT_OK
    if outcome.state == GateState.CANCELLED:
        return EXIT_CANCELLED
    return EXIT_TIMED_OUT


def exit_code_for_error(error: BaseException) -> int:
    """Map an orchestration failure to a process exit code."""
    if isinstance(error, WaitTimeoutError):
        return EXIT_TIMED_OUT
    if isinstance(error, OperationCancelled):
        return EXIT_CANCELLED
    return EXIT_FAILED


@contextmanager
def cancellation_scope() -> Iterator[CancellationToken]:
    """Yield a token that is cancelled when the user hits Ctrl+C.

    Raises:
        typer.Exit: With the cancelled exit code on keyboard interrupt
    """
    token = CancellationToken()
    try:
        yield token
    except KeyboardInterrupt:
        token.cancel("interrupted by user")
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(EXIT_CANCELLED) from None
