# runner.py
from __future__ import annotations

import os
from concurrent.futures import Future, ThreadPoolExecutor, as_completed, wait
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional

from . import gate
from .aggregate import aggregate, decided, not_run
from .errors import StepFailure
from .executor import ShellExecutor, StepExecutor, hint_for
from .matrix import expand, select_steps, skipped_steps
from .model import (
    EventContext,
    ExitStatus,
    InstanceReport,
    JobInstance,
    Outcome,
    Pipeline,
    PipelineOutcome,
    Step,
)
from .ui.console import Console, get_console


# ----------------------------------------------------------------------
# Planning (no side effects)
# ----------------------------------------------------------------------

@dataclass
class PipelinePlan:
    pipeline: Pipeline
    event: EventContext
    gate_open: bool
    gate_reason: str
    instances: List[JobInstance] = field(default_factory=list)

    def skipped(self, instance: JobInstance) -> List[Step]:
        return skipped_steps(instance.channel, self.pipeline.steps)


def plan(pipeline: Pipeline, event: EventContext) -> PipelinePlan:
    """
    Validate, evaluate the gate, expand the matrix and select steps.

    Raises ConfigurationError before anything is instantiated.
    """
    pipeline.validate()

    open_ = gate.evaluate(event, mainline=pipeline.mainline)
    reason = gate.describe(event, mainline=pipeline.mainline)
    if not open_:
        return PipelinePlan(pipeline, event, gate_open=False, gate_reason=reason)

    instances = expand(pipeline.channels, event, allow_failures=pipeline.allow_failures)
    for inst in instances:
        inst.steps = select_steps(inst.channel, pipeline.steps)
    return PipelinePlan(pipeline, event, gate_open=True, gate_reason=reason, instances=instances)


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def run_instance(instance: JobInstance, executor: StepExecutor, console: Console) -> JobInstance:
    """
    Run the instance's steps in order, stopping at the first failure.

    A step failure is recorded on the instance, not raised.
    """
    instance.start()
    console.print_instance_start(instance.label)

    for step in instance.steps:
        console.print_step(instance.label, step.name)
        status: ExitStatus = executor.run_step(step, instance)
        instance.record(status)

        if not status.ok:
            failure = StepFailure(
                instance=instance.label,
                step=step.name,
                cmd=step.run,
                exit_code=status.exit_code,
                output=status.output,
            )
            console.print_step_failure(
                instance.label,
                step.name,
                status.exit_code,
                hint=hint_for(step, status.exit_code),
                output=status.output,
            )
            instance.failed(failure)
            console.print_instance_done(instance.label, instance.outcome.value, instance.allow_failure)
            return instance

    instance.passed()
    console.print_instance_done(instance.label, instance.outcome.value, instance.allow_failure)
    return instance


def _settled_view(instances: List[JobInstance], settled: set) -> List[InstanceReport]:
    # an instance whose future has not been collected yet counts as pending,
    # even if its worker already moved it to a terminal state
    views = []
    for inst in instances:
        report = inst.snapshot()
        if inst.index not in settled:
            report = replace(report, outcome=Outcome.PENDING)
        views.append(report)
    return views


def _collect(fut: Future, instance: JobInstance, console: Console) -> None:
    """
    Settle a finished future. An executor that raises (rather than
    returning a non-zero status) still fails only its own instance.
    """
    try:
        fut.result()
    except Exception as e:
        console.print_exception(e)
        if instance.outcome is Outcome.PENDING:
            instance.start()
        if instance.outcome is Outcome.RUNNING:
            pos = len(instance.results)
            step = instance.steps[pos] if pos < len(instance.steps) else None
            instance.failed(StepFailure(
                instance=instance.label,
                step=step.name if step else "<executor>",
                cmd=step.run if step else "",
                exit_code=-1,
                output=f"{type(e).__name__}: {e}",
            ))


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

@dataclass
class PipelineRun:
    """
    Result of `run_pipeline`.

    `outcome` is what was reported. With fast finish it may be reported
    while allow-failure instances are still running; they are never
    cancelled and `wait()` returns the outcome once they are done.
    """
    pipeline: Pipeline
    event: EventContext
    outcome: PipelineOutcome
    instances: List[JobInstance] = field(default_factory=list)
    pending: Dict[Future, JobInstance] = field(default_factory=dict)
    console: Optional[Console] = None

    @property
    def early(self) -> bool:
        return bool(self.pending)

    def wait(self, on_late: Optional[Callable[[JobInstance], None]] = None) -> PipelineOutcome:
        if not self.pending:
            return self.outcome

        console = self.console or get_console()
        done, _ = wait(list(self.pending))
        for fut in done:
            inst = self.pending.pop(fut)
            _collect(fut, inst, console)
            if on_late is not None:
                on_late(inst)

        return aggregate(self.instances, pipeline=self.pipeline.name, event=self.event)


def default_workers() -> int:
    c = os.cpu_count() or 2
    return max(1, c - 1)


def run_pipeline(
    pipeline: Pipeline,
    event: EventContext,
    *,
    executor: StepExecutor | None = None,
    max_workers: int | None = None,
    console: Console | None = None,
) -> PipelineRun:
    """
    Gate, expand, run every job instance in parallel and aggregate.

    Raises ConfigurationError before spawning anything if the pipeline or
    event is malformed. Gate rejection returns a `not_run` outcome.
    """
    console = console or get_console()
    executor = executor or ShellExecutor()

    p = plan(pipeline, event)
    console.print_gate(p.gate_open, p.gate_reason)
    if not p.gate_open:
        return PipelineRun(pipeline, event, not_run(pipeline.name, event), console=console)

    console.print_plan(p)
    instances = p.instances
    if not instances:
        outcome = aggregate([], pipeline=pipeline.name, event=event)
        return PipelineRun(pipeline, event, outcome, console=console)

    if max_workers is None:
        max_workers = default_workers()

    pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="matrixci")
    in_flight: Dict[Future, JobInstance] = {}
    try:
        for inst in instances:
            fut = pool.submit(run_instance, inst, executor, console)
            in_flight[fut] = inst

        settled: set = set()
        for fut in as_completed(list(in_flight)):
            inst = in_flight.pop(fut)
            _collect(fut, inst, console)
            settled.add(inst.index)
            if decided(_settled_view(instances, settled), pipeline.fast_finish):
                break
    finally:
        # queued and running instances keep going; nothing is cancelled
        pool.shutdown(wait=False)

    outcome = aggregate(instances, pipeline=pipeline.name, event=event, early=bool(in_flight))
    return PipelineRun(pipeline, event, outcome, instances=instances, pending=in_flight, console=console)
