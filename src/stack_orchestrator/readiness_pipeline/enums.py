"""Enums for the readiness pipeline.

Kept in their own module so that models, checks and the pipeline can import
them without circular dependencies.
"""

from enum import StrEnum


class CheckStatus(StrEnum):
    """Status of individual checks or pipeline stages."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class StackState(StrEnum):
    """Overall readiness of the service stack."""

    CHECKING = "checking"
    OPERATIONAL = "operational"
    DEGRADED = "degraded"  # Some non-critical services are not ready
    ERROR = "error"
