"""Thin wrapper around ``docker compose``.

Containers are managed by Docker Compose; the orchestrator only invokes it
with the right compose file and environment and then gates on readiness.
"""

import os
import subprocess
from collections.abc import Callable, Sequence

from loguru import logger

from .constants import COMPOSE_FILE_DEV, COMPOSE_FILE_PROD
from .exceptions import ComposeError
from .settings import Settings, get_settings

Runner = Callable[..., subprocess.CompletedProcess]


class ComposeRunner:
    """Runs ``docker compose`` against the development or production file.

    Args:
        settings: ``prod`` selects the production compose file
        runner: Replacement for ``subprocess.run`` (tests)
    """

    def __init__(self, settings: Settings | None = None, runner: Runner = subprocess.run):
        self.settings = settings or get_settings()
        self._runner = runner

    @property
    def compose_file(self) -> str:
        return COMPOSE_FILE_PROD if self.settings.prod else COMPOSE_FILE_DEV

    def command(self, *args: str) -> list[str]:
        """Return the full command line for ``docker compose <args>``."""
        return ["docker", "compose", "-f", self.compose_file, *args]

    def environment(self) -> dict[str, str]:
        """Process environment with the host user and group ids exported."""
        env = dict(os.environ)
        if hasattr(os, "getuid"):
            env.setdefault("DOCKER_USER_ID", str(os.getuid()))
            env.setdefault("DOCKER_GROUP_ID", str(os.getgid()))
        return env

    def run(self, *args: str) -> None:
        """Run ``docker compose`` with ``args``.

        Raises:
            ComposeError: The command could not be started or exited non-zero
        """
        command = self.command(*args)
        logger.info("Running {}", " ".join(command))
        try:
            completed = self._runner(command, env=self.environment(), check=False)
        except OSError as e:
            logger.error("Could not run docker compose: {}", e)
            raise ComposeError(command, 127) from e
        if completed.returncode != 0:
            raise ComposeError(command, completed.returncode)

    def up(self, flags: Sequence[str] = ()) -> None:
        """Bring all services up in the background."""
        self.run("up", "-d", *flags)

    def down(self, flags: Sequence[str] = ()) -> None:
        """Take all services down."""
        self.run("down", *flags)
