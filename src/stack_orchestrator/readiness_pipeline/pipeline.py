"""Stage-based readiness pipeline for bringing the stack up.

Stages run in the order they were added. When a critical stage fails the
pipeline stops and every remaining stage is reported as skipped, so a
service that never became ready aborts the start-up sequence instead of
letting it continue silently.

State Determination Logic:
- All checks pass: OPERATIONAL state with SUCCESS status
- Some checks pass: DEGRADED state with FAILED status
- No checks pass, or a critical stage failed: ERROR state with FAILED status

Typical Usage:
    pipeline = build_startup_pipeline(gate, settings)
    result = pipeline.execute()
    if result.stack_state == StackState.OPERATIONAL:
        print("Stack is ready")
"""

import arrow
from loguru import logger

from .enums import CheckStatus, StackState
from .models import ReadinessPipelineResult, ReadinessStageResult
from .stage import ReadinessStage


class ReadinessPipeline:
    """Pipeline that orchestrates execution of check stages in sequence.

    Attributes:
        stages: List of ReadinessStage objects to execute in order
    """

    def __init__(self, stages: list[ReadinessStage]):
        self.stages = stages

    def execute(self) -> ReadinessPipelineResult:
        """Execute the complete pipeline and return finalized results."""
        logger.info("Starting readiness pipeline execution")
        start_time = arrow.utcnow().float_timestamp

        result = ReadinessPipelineResult(
            stack_state=StackState.CHECKING,
            overall_status=CheckStatus.RUNNING,
            message="Readiness pipeline execution in progress",
        )
        logger.info(f"Pipeline will execute {len(self.stages)} stages")

        for index, stage in enumerate(self.stages):
            stage_result = stage.execute()
            result.stage_results.append(stage_result)

            if stage_result.status == CheckStatus.SUCCESS:
                logger.info(f"Stage {stage.name} completed successfully")
            else:
                logger.warning(f"Stage {stage.name} failed")

            if stage.is_critical and stage_result.status == CheckStatus.FAILED:
                result.overall_status = CheckStatus.FAILED
                result.stack_state = StackState.ERROR
                result.message = f"Critical stage '{stage.name}' failed"
                logger.error(f"Critical stage {stage.name} failed, stopping")
                self._mark_remaining_stages_skipped(result, self.stages[index + 1 :])
                break

        self._finalize(result, start_time)

        logger.info(f"Pipeline completed with status {result.overall_status.value} and stack state {result.stack_state.value}")
        return result

    def get_stage_names(self) -> list[str]:
        """Get names of all stages in this pipeline."""
        return [stage.name for stage in self.stages]

    def _mark_remaining_stages_skipped(self, result: ReadinessPipelineResult, remaining: list[ReadinessStage]) -> None:
        for stage in remaining:
            result.stage_results.append(
                ReadinessStageResult(
                    stage_name=stage.name,
                    status=CheckStatus.SKIPPED,
                    message="Skipped due to critical stage failure",
                    total_checks=len(stage.checks),
                    skipped_checks=len(stage.checks),
                )
            )
            logger.info(f"Skipping stage {stage.name} due to critical failure")

    def _finalize(self, result: ReadinessPipelineResult, start_time: float) -> None:
        """Aggregate statistics and determine the overall stack state."""
        for stage_result in result.stage_results:
            result.total_checks += stage_result.total_checks
            result.successful_checks += stage_result.successful_checks
            result.failed_checks += stage_result.failed_checks
            result.skipped_checks += stage_result.skipped_checks

        result.total_stages = len(result.stage_results)
        result.successful_stages = sum(1 for sr in result.stage_results if sr.status == CheckStatus.SUCCESS)
        result.failed_stages = sum(1 for sr in result.stage_results if sr.status == CheckStatus.FAILED)
        result.skipped_stages = sum(1 for sr in result.stage_results if sr.status == CheckStatus.SKIPPED)

        if result.overall_status == CheckStatus.RUNNING:
            if result.failed_checks == 0:
                result.overall_status = CheckStatus.SUCCESS
                result.stack_state = StackState.OPERATIONAL
                result.message = "All pipeline stages completed successfully"
            else:
                result.overall_status = CheckStatus.FAILED
                result.stack_state = StackState.DEGRADED if result.successful_checks > 0 else StackState.ERROR
                result.message = f"Pipeline completed with {result.failed_checks} check failures"
                logger.warning("Pipeline completed with {} failures", result.failed_checks)

        result.total_execution_time_ms = (arrow.utcnow().float_timestamp - start_time) * 1000

    def __repr__(self) -> str:
        return f"ReadinessPipeline(stages={self.get_stage_names()})"
