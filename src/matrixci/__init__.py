from .dsl import sh, setup, lint, audit, build, test, matrix, pipeline, builder, PipelineBuilder, always, only, skip
from .runner import run_pipeline, plan
from .model import Pipeline, Step, StepKind, EventContext, EventType, PipelineStatus
from .errors import ConfigurationError, StepFailure

__all__ = [
    "sh", "setup", "lint", "audit", "build", "test", "matrix", "pipeline", "builder", "PipelineBuilder",
    "always", "only", "skip",
    "run_pipeline", "plan",
    "Pipeline", "Step", "StepKind", "EventContext", "EventType", "PipelineStatus",
    "ConfigurationError", "StepFailure",
]
