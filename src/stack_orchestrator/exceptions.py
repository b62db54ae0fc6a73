"""Common exceptions for the orchestrator.

The error taxonomy shared by the probe, the readiness gates and the index
lifecycle coordinator. ``OperationCancelled`` deliberately sits outside the
``OrchestratorError`` hierarchy: a cooperative abort is not an error.
"""

from typing import Any


class OrchestratorError(Exception):
    """Base class of all orchestrator errors."""


class TransientNetworkError(OrchestratorError):
    """Raised when a remote call fails in a way that may succeed on retry.

    Covers transport failures (connection refused, timeouts) and 5xx
    responses from the remote side.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class WaitTimeoutError(OrchestratorError, TimeoutError):
    """Raised when a polled condition does not hold within the allowed time."""

    def __init__(self, description: str, elapsed: float, attempts: int):
        self.description = description
        self.elapsed = elapsed
        self.attempts = attempts
        super().__init__(f"Timed out waiting for {description} after {elapsed:.1f}s ({attempts} attempts)")


class PreconditionError(OrchestratorError):
    """Raised when a lifecycle request would violate an ordering invariant.

    This is a caller logic error and is never retried.
    """


class RemoteRejection(OrchestratorError):
    """Raised when the remote side terminally refuses a request."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class LifecycleError(OrchestratorError):
    """Raised when a lifecycle action finally fails.

    Attributes:
        action: The lifecycle action that failed
        cause: The underlying exception
    """

    def __init__(self, action: str, cause: BaseException):
        self.action = action
        self.cause = cause
        super().__init__(f"{action} failed: {cause}")


class OperationCancelled(Exception):  # noqa: N818
    """Raised when a wait is aborted through its cancellation token."""

    def __init__(self, description: str = "operation"):
        self.description = description
        super().__init__(f"{description} cancelled")


class ComposeError(OrchestratorError):
    """Raised when a ``docker compose`` invocation fails."""

    def __init__(self, command: list[str], returncode: int):
        self.command = command
        self.returncode = returncode
        super().__init__(f"'{' '.join(command)}' exited with {returncode}")
