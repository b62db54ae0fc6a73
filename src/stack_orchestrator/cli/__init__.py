"""CLI module for stack-orchestrator.

Provides the command-line interface for starting the stack, gating on its
services and managing search index lifecycles.
"""

from stack_orchestrator.cli.app import app

__all__ = ["app"]
