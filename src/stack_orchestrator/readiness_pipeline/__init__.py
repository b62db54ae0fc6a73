"""Stack readiness pipeline.

Stages group related readiness checks and run sequentially; a failing
critical stage stops the pipeline. The pipeline runtime is decoupled from
specific checks, which live in the ``stack_orchestrator.checks`` package.
"""

from .base import ReadinessCheck
from .builder import ReadinessPipelineBuilder
from .enums import CheckStatus, StackState
from .models import ReadinessCheckResult, ReadinessPipelineResult, ReadinessStageResult
from .pipeline import ReadinessPipeline
from .stage import ReadinessStage

__all__ = [
    # Core models
    "CheckStatus",
    "StackState",
    "ReadinessCheck",
    "ReadinessCheckResult",
    "ReadinessStageResult",
    "ReadinessPipelineResult",
    # Pipeline components
    "ReadinessStage",
    "ReadinessPipeline",
    "ReadinessPipelineBuilder",
]
