"""Readiness pipeline stage: a group of related checks.

Stages organize checks into meaningful units (e.g. "search backend",
"ingestion server") and control how a failure affects the rest of the
stage (fail-fast and critical checks).

Typical Usage:
    stage = (
        ReadinessStage(name="ingestion_server", description="Ingestion server health", is_critical=True)
        .add_check(GateCheck(gate, ingestion_endpoint()))
    )

    result = stage.execute()
    if result.status == CheckStatus.SUCCESS:
        print("Ingestion server is up")
"""

import arrow
from loguru import logger

from stack_orchestrator.exceptions import OrchestratorError

from .base import ReadinessCheck
from .enums import CheckStatus
from .models import ReadinessCheckResult, ReadinessStageResult


class ReadinessStage:
    """A readiness pipeline stage containing logically related checks.

    Attributes:
        name: Unique identifier for this stage
        description: Human-readable description of stage purpose
        is_critical: Whether failure stops the entire pipeline
        fail_fast: Whether to stop on first check failure
        checks: List of ReadinessCheck objects in this stage
    """

    def __init__(self, name: str, description: str, is_critical: bool = False, fail_fast: bool = True):
        self.name = name
        self.description = description
        self.is_critical = is_critical
        self.fail_fast = fail_fast
        self.checks: list[ReadinessCheck] = []

    def add_check(self, check: ReadinessCheck) -> "ReadinessStage":
        """Add a check to this stage (fluent interface)."""
        self.checks.append(check)
        return self

    def execute(self) -> ReadinessStageResult:
        """Execute all checks in this stage sequentially."""
        logger.info(f"Executing pipeline stage: {self.name}")
        start_time = arrow.utcnow().float_timestamp

        result = ReadinessStageResult(
            stage_name=self.name,
            status=CheckStatus.RUNNING,
            message=f"Executing {self.name} stage",
            executed_at=arrow.utcnow().isoformat(),
            total_checks=len(self.checks),
        )

        for index, check in enumerate(self.checks):
            check_result = self._execute_check(check)
            result.check_results.append(check_result)

            if check_result.status == CheckStatus.SUCCESS:
                result.successful_checks += 1
                logger.debug("Check {} passed", check.name)
                continue

            result.failed_checks += 1
            logger.warning("Check {} failed: {}", check.name, check_result.message)
            if check.is_critical or self.fail_fast:
                reason = "Critical check" if check.is_critical else "Check"
                result.status = CheckStatus.FAILED
                result.message = f"{reason} '{check.name}' failed in stage '{self.name}'"
                self._mark_skipped(result, self.checks[index + 1 :], "due to previous failure in stage")
                break

        if result.status == CheckStatus.RUNNING:
            if result.failed_checks == 0:
                result.status = CheckStatus.SUCCESS
                result.message = (
                    f"Stage '{self.name}' completed successfully: {result.successful_checks}/{result.total_checks} checks passed"
                )
            else:
                result.status = CheckStatus.FAILED
                result.message = (
                    f"Stage '{self.name}' completed with failures: {result.failed_checks}/{result.total_checks} checks failed"
                )

        result.execution_time_ms = (arrow.utcnow().float_timestamp - start_time) * 1000
        logger.info(f"Stage {self.name} completed with status {result.status.value} in {result.execution_time_ms:.1f}ms")
        return result

    def _execute_check(self, check: ReadinessCheck) -> ReadinessCheckResult:
        """Run a check, timing it and converting errors into failed results."""
        logger.debug(f"Running check: {check.name}")
        start_time = arrow.utcnow().float_timestamp
        executed_at = arrow.utcnow().isoformat()

        try:
            check_result = check.run()
        except (OrchestratorError, OSError, ValueError, RuntimeError) as e:
            logger.error(f"Check {check.name} threw exception: {e}")
            check_result = check.failed(
                f"Check execution failed: {e}",
                {"exception": str(e), "type": type(e).__name__},
            )

        check_result.stage_name = self.name
        check_result.executed_at = executed_at
        check_result.execution_time_ms = (arrow.utcnow().float_timestamp - start_time) * 1000
        return check_result

    def _mark_skipped(self, result: ReadinessStageResult, remaining: list[ReadinessCheck], reason: str) -> None:
        for check in remaining:
            result.check_results.append(
                ReadinessCheckResult(
                    status=CheckStatus.SKIPPED,
                    message=f"Skipped {reason}",
                    check_name=check.name,
                    stage_name=self.name,
                )
            )
            result.skipped_checks += 1
            logger.debug("Skipping check {} {}", check.name, reason)

    def __repr__(self) -> str:
        return (
            f"ReadinessStage(name='{self.name}', is_critical={self.is_critical}, "
            f"fail_fast={self.fail_fast}, checks={len(self.checks)})"
        )
