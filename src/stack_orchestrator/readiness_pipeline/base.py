"""Base abstraction for readiness pipeline checks."""

from abc import ABC, abstractmethod
from typing import Any

from .enums import CheckStatus
from .models import ReadinessCheckResult


class ReadinessCheck(ABC):
    """Abstract base class for individual readiness checks."""

    def __init__(self, name: str, is_critical: bool = False):
        """Initialize the readiness check.

        Args:
            name: The name of this readiness check (used in result.check_name field)
            is_critical: If True, failure stops the current pipeline stage
        """
        self.name = name
        self.is_critical = is_critical

    @abstractmethod
    def _execute(self) -> ReadinessCheckResult:
        """Execute the readiness check and return the result.

        This method should be implemented by subclasses.
        """

    def run(self) -> ReadinessCheckResult:
        """Execute the readiness check."""
        return self._execute()

    def success(self, message: str, details: dict[str, Any] | None = None) -> ReadinessCheckResult:
        """Return a successful check result."""
        return self._result(CheckStatus.SUCCESS, message, details)

    def failed(self, message: str, details: dict[str, Any] | None = None) -> ReadinessCheckResult:
        """Return a failed check result."""
        return self._result(CheckStatus.FAILED, message, details)

    def _result(self, status: CheckStatus, message: str, details: dict[str, Any] | None) -> ReadinessCheckResult:
        return ReadinessCheckResult(check_name=self.name, status=status, message=message, details=details or {})
