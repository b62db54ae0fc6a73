"""Pipeline builder for constructing readiness pipelines."""

from .pipeline import ReadinessPipeline
from .stage import ReadinessStage


class ReadinessPipelineBuilder:
    """Builder for constructing readiness pipelines with fluent interface."""

    def __init__(self):
        self.stages: list[ReadinessStage] = []
        self._stages_by_name: dict[str, ReadinessStage] = {}

    def add_stage(
        self,
        name: str,
        description: str,
        is_critical: bool = False,
        fail_fast: bool = True,
    ) -> ReadinessStage:
        """Add a new pipeline stage and return it for chaining.

        Raises:
            ValueError: If stage name already exists
        """
        if name in self._stages_by_name:
            raise ValueError(f"Stage '{name}' already exists")

        stage = ReadinessStage(name, description, is_critical, fail_fast)
        self.stages.append(stage)
        self._stages_by_name[name] = stage
        return stage

    def build(self) -> ReadinessPipeline:
        """Build the final pipeline."""
        return ReadinessPipeline(self.stages)
