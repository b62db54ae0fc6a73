"""Main CLI application."""

import typer

from stack_orchestrator.cli.commands import index, stack
from stack_orchestrator.logging import setup_logging
from stack_orchestrator.settings import get_settings

app = typer.Typer(
    name="stack-orchestrator",
    help="Stack orchestrator - start the media stack and manage search indices",
    no_args_is_help=True,
)


LOG_LEVEL_OPTION = typer.Option(
    None,
    help="Log level (overrides STACK_ORCHESTRATOR_LOG_LEVEL)",
    metavar="<level>",
    case_sensitive=False,
)  # fmt: skip
TIMEOUT_OPTION = typer.Option(
    None,
    help="Maximum wait per gate in seconds (overrides STACK_ORCHESTRATOR_TIMEOUT)",
    metavar="<seconds>",
)  # fmt: skip
INTERVAL_OPTION = typer.Option(
    None,
    help="Spacing between readiness polls in seconds (overrides STACK_ORCHESTRATOR_INTERVAL)",
    metavar="<seconds>",
)  # fmt: skip
PROD_OPTION = typer.Option(
    None,
    "--prod/--dev",
    help="Use the production or development compose file (overrides STACK_ORCHESTRATOR_PROD)",
)  # fmt: skip


def _update_settings(
    log_level: str | None,
    timeout: float | None,
    interval: float | None,
    prod: bool | None,
) -> None:
    """Update settings with CLI overrides.

    Args:
        log_level: Log level override
        timeout: Gate timeout override
        interval: Poll interval override
        prod: Compose file selection override
    """
    settings = get_settings()

    # Apply overrides
    if log_level is not None:
        settings.log_level = log_level
    if timeout is not None:
        settings.timeout = timeout
    if interval is not None:
        settings.interval = interval
    if prod is not None:
        settings.prod = prod


@app.callback()
def main_callback(
    log_level: str = LOG_LEVEL_OPTION,
    timeout: float = TIMEOUT_OPTION,
    interval: float = INTERVAL_OPTION,
    prod: bool = PROD_OPTION,
):
    """Global options for all commands."""
    _update_settings(log_level, timeout, interval, prod)
    setup_logging(get_settings().log_level, compact=True)


# Register command groups
app.add_typer(stack.app, name="stack")
app.add_typer(index.app, name="index")
