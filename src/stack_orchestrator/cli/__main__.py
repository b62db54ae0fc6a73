"""CLI entry point.

Usage:
    python -m stack_orchestrator.cli stack up
    python -m stack_orchestrator.cli index ingest-upstream image init --promote image
    stack-orchestrator stack wait api
    stack-orchestrator index promote audio init audio
"""

from stack_orchestrator.cli.app import app


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
