# aggregate.py
from __future__ import annotations

from typing import Iterable, List, Optional, Union

from .model import EventContext, InstanceReport, JobInstance, Outcome, PipelineOutcome, PipelineStatus

InstanceLike = Union[JobInstance, InstanceReport]


def _reports(instances: Iterable[InstanceLike]) -> List[InstanceReport]:
    return [i.snapshot() if isinstance(i, JobInstance) else i for i in instances]


def required_failed(instances: Iterable[InstanceLike]) -> bool:
    """True once any instance that is not allowed to fail has failed."""
    return any(r.outcome is Outcome.FAILED and not r.allow_failure for r in _reports(instances))


def decided(instances: Iterable[InstanceLike], fast_finish: bool = False) -> bool:
    """
    Can the global outcome be reported yet?

    Without fast finish: only when every instance is terminal.
    With fast finish: as soon as a required instance failed, or every
    required instance is terminal; allow-failure instances are not waited on.
    """
    reports = _reports(instances)
    if not fast_finish:
        return all(r.outcome.terminal for r in reports)
    if required_failed(reports):
        return True
    return all(r.outcome.terminal for r in reports if not r.allow_failure)


def aggregate(
    instances: Iterable[InstanceLike],
    *,
    pipeline: str = "",
    event: Optional[EventContext] = None,
    early: bool = False,
) -> PipelineOutcome:
    """
    Fold instance outcomes into the pipeline outcome.

    Failed iff some instance outside the allow-failure set failed. An
    empty matrix passes. Raises ValueError if a required instance has not
    finished and nothing has failed yet, since the result is not known.
    """
    reports = _reports(instances)

    if required_failed(reports):
        status = PipelineStatus.FAILED
    elif all(r.outcome.terminal for r in reports if not r.allow_failure):
        status = PipelineStatus.PASSED
    else:
        pending = [r.channel for r in reports if not r.allow_failure and not r.outcome.terminal]
        raise ValueError(f"outcome undetermined, required instances still running: {pending}")

    return PipelineOutcome(
        pipeline=pipeline,
        status=status,
        instances=reports,
        event=event,
        early=early,
    )


def not_run(pipeline: str, event: EventContext) -> PipelineOutcome:
    return PipelineOutcome(pipeline=pipeline, status=PipelineStatus.NOT_RUN, event=event)


def config_error(pipeline: str, error: Exception, event: Optional[EventContext] = None) -> PipelineOutcome:
    return PipelineOutcome(
        pipeline=pipeline,
        status=PipelineStatus.CONFIG_ERROR,
        event=event,
        error=str(error),
    )
