"""Result models of the readiness pipeline."""

from typing import Any

import arrow
from pydantic import BaseModel, Field

from .enums import CheckStatus, StackState


class ReadinessCheckResult(BaseModel):
    """Result of an individual readiness check."""

    status: CheckStatus
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    check_name: str
    stage_name: str | None = None
    executed_at: str | None = None  # ISO 8601 UTC timestamp
    execution_time_ms: float | None = None


class ReadinessStageResult(BaseModel):
    """Result of a readiness pipeline stage (group of related checks)."""

    stage_name: str
    status: CheckStatus
    message: str
    check_results: list[ReadinessCheckResult] = Field(default_factory=list)
    executed_at: str | None = None  # ISO 8601 UTC timestamp
    execution_time_ms: float | None = None
    total_checks: int = 0
    successful_checks: int = 0
    failed_checks: int = 0
    skipped_checks: int = 0


class ReadinessPipelineResult(BaseModel):
    """Complete result of a readiness pipeline execution."""

    overall_status: CheckStatus
    stack_state: StackState
    message: str
    stage_results: list[ReadinessStageResult] = Field(default_factory=list)
    executed_at: str = Field(default_factory=lambda: arrow.utcnow().isoformat())
    total_execution_time_ms: float | None = None
    total_stages: int = 0
    successful_stages: int = 0
    failed_stages: int = 0
    skipped_stages: int = 0
    total_checks: int = 0
    successful_checks: int = 0
    failed_checks: int = 0
    skipped_checks: int = 0

    def failed_check_results(self) -> list[ReadinessCheckResult]:
        """Return the results of all checks that did not pass."""
        return [
            check_result
            for stage_result in self.stage_results
            for check_result in stage_result.check_results
            if check_result.status == CheckStatus.FAILED
        ]
