# model.py
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional

from .errors import ConfigurationError, InvalidTransition, StepFailure
from .predicates import ALWAYS, PREDICATE_TYPES, Predicate


class StepKind(str, Enum):
    SETUP = "setup"
    LINT = "lint"
    AUDIT = "audit"
    BUILD = "build"
    TEST = "test"


class EventType(str, Enum):
    PUSH = "push"
    PULL_REQUEST = "pull_request"
    CRON = "cron"
    MANUAL = "manual"


class Outcome(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (Outcome.PASSED, Outcome.FAILED)


class PipelineStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    NOT_RUN = "not_run"
    CONFIG_ERROR = "config_error"


# event names used by Travis and GitHub Actions
_EVENT_ALIASES = {
    "pull-request": EventType.PULL_REQUEST,
    "pr": EventType.PULL_REQUEST,
    "api": EventType.MANUAL,
    "workflow_dispatch": EventType.MANUAL,
    "schedule": EventType.CRON,
}


def parse_event_type(value: str) -> EventType:
    key = (value or "").strip().lower()
    if key in _EVENT_ALIASES:
        return _EVENT_ALIASES[key]
    try:
        return EventType(key)
    except ValueError:
        known = sorted({e.value for e in EventType} | set(_EVENT_ALIASES))
        raise ConfigurationError([f"unknown event type {value!r} (known: {known})"]) from None


@dataclass(frozen=True)
class Step:
    """A single command (step) run inside every job instance it is eligible for."""
    name: str
    run: str
    kind: StepKind = StepKind.BUILD
    when: Predicate = ALWAYS
    cwd: str | None = None

    def eligible(self, channel: str) -> bool:
        return self.when.applies(channel)


@dataclass(frozen=True)
class EventContext:
    """What triggered the pipeline."""
    event_type: EventType
    branch: str
    tag: str | None = None

    @property
    def has_tag(self) -> bool:
        return bool(self.tag)

    @classmethod
    def create(cls, event_type: str | EventType, branch: str | None, tag: str | None = None) -> EventContext:
        """Validating constructor used by the CLI and the env reader."""
        problems: List[str] = []
        etype: Optional[EventType] = None
        if isinstance(event_type, EventType):
            etype = event_type
        else:
            try:
                etype = parse_event_type(event_type)
            except ConfigurationError as e:
                problems.extend(e.problems)
        if not branch:
            problems.append("event is missing a branch")
        if problems:
            raise ConfigurationError(problems, source="event")
        return cls(event_type=etype, branch=branch, tag=tag or None)

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> Optional[EventContext]:
        """
        Read the event from MATRIXCI_* variables, falling back to TRAVIS_*.

        Returns None when the environment carries no event at all.
        """
        for prefix in ("MATRIXCI", "TRAVIS"):
            etype = environ.get(f"{prefix}_EVENT") or environ.get(f"{prefix}_EVENT_TYPE")
            if etype:
                return cls.create(
                    etype,
                    environ.get(f"{prefix}_BRANCH"),
                    environ.get(f"{prefix}_TAG"),
                )
        return None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"type": self.event_type.value, "branch": self.branch, "tag": self.tag}


@dataclass
class Pipeline:
    """
    Configuration-time descriptor: the channel matrix plus the step list.

    `allow_failures` must be a subset of `channels`; every channel a step
    predicate mentions must be declared. `validate()` checks both.
    """
    name: str
    channels: List[str]
    steps: List[Step]
    allow_failures: List[str] = field(default_factory=list)
    fast_finish: bool = False
    mainline: str = "master"

    def validate(self) -> None:
        problems: List[str] = []
        declared = set(self.channels)

        if not self.name:
            problems.append("pipeline has no name")
        for ch in self.channels:
            if not isinstance(ch, str) or not ch:
                problems.append(f"channel {ch!r} is not a non-empty string")
        for ch in self.allow_failures:
            if ch not in declared:
                problems.append(f"allow_failures names undeclared channel {ch!r}")
        if not self.mainline:
            problems.append("mainline branch is empty")

        seen: set = set()
        for idx, step in enumerate(self.steps):
            label = step.name or f"#{idx}"
            if not step.name:
                problems.append(f"step #{idx} has no name")
            elif step.name in seen:
                problems.append(f"duplicate step name {step.name!r}")
            seen.add(step.name)
            if not step.run or not step.run.strip():
                problems.append(f"step {label!r} has no command")
            if not isinstance(step.kind, StepKind):
                problems.append(f"step {label!r} has invalid kind {step.kind!r}")
            if not isinstance(step.when, PREDICATE_TYPES):
                problems.append(
                    f"step {label!r} condition {step.when!r} is not a predicate "
                    "(use always(), only(...) or skip(...))"
                )
                continue
            for ch in sorted(step.when.channels()):
                if ch not in declared:
                    problems.append(f"step {label!r} references undeclared channel {ch!r}")

        if problems:
            raise ConfigurationError(problems, source=f"pipeline {self.name!r}")


@dataclass
class ExitStatus:
    step: str
    exit_code: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass
class JobInstance:
    """
    One channel of the matrix for one event.

    Only the worker running the instance mutates it; everyone else reads
    `snapshot()`. Transitions: pending -> running -> passed|failed.
    """
    index: int
    channel: str
    allow_failure: bool = False
    steps: List[Step] = field(default_factory=list)
    outcome: Outcome = Outcome.PENDING
    results: List[ExitStatus] = field(default_factory=list)
    failure: Optional[StepFailure] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def label(self) -> str:
        return f"{self.channel}#{self.index}"

    def _move(self, target: Outcome, allowed_from: Outcome) -> None:
        with self._lock:
            if self.outcome is not allowed_from:
                raise InvalidTransition(self.label, self.outcome.value, target.value)
            self.outcome = target

    def start(self) -> None:
        self._move(Outcome.RUNNING, Outcome.PENDING)

    def record(self, result: ExitStatus) -> None:
        with self._lock:
            if self.outcome is not Outcome.RUNNING:
                raise InvalidTransition(self.label, self.outcome.value, "record")
            self.results.append(result)

    def passed(self) -> None:
        self._move(Outcome.PASSED, Outcome.RUNNING)

    def failed(self, failure: StepFailure) -> None:
        with self._lock:
            if self.outcome is not Outcome.RUNNING:
                raise InvalidTransition(self.label, self.outcome.value, Outcome.FAILED.value)
            self.failure = failure
            self.outcome = Outcome.FAILED

    def snapshot(self) -> InstanceReport:
        with self._lock:
            return InstanceReport(
                index=self.index,
                channel=self.channel,
                allow_failure=self.allow_failure,
                outcome=self.outcome,
                steps=[s.name for s in self.steps],
                results=list(self.results),
                failed_step=self.failure.step if self.failure else None,
                exit_code=self.failure.exit_code if self.failure else None,
            )


@dataclass(frozen=True)
class InstanceReport:
    """Immutable view of a job instance at report time."""
    index: int
    channel: str
    allow_failure: bool
    outcome: Outcome
    steps: List[str]
    results: List[ExitStatus]
    failed_step: Optional[str] = None
    exit_code: Optional[int] = None

    @property
    def category(self) -> str:
        if self.outcome is Outcome.FAILED:
            return "failed (allowed)" if self.allow_failure else "failed"
        if self.outcome is Outcome.PASSED:
            return "passed"
        return f"{self.outcome.value} (allowed)" if self.allow_failure else self.outcome.value

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "channel": self.channel,
            "allow_failure": self.allow_failure,
            "outcome": self.outcome.value,
            "category": self.category,
            "failed_step": self.failed_step,
            "exit_code": self.exit_code,
            "steps": [
                {"name": r.step, "exit_code": r.exit_code}
                for r in self.results
            ],
            "selected_steps": list(self.steps),
        }


@dataclass(frozen=True)
class PipelineOutcome:
    """Global result plus per-instance reports (the notification payload)."""
    pipeline: str
    status: PipelineStatus
    instances: List[InstanceReport] = field(default_factory=list)
    event: Optional[EventContext] = None
    early: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (PipelineStatus.PASSED, PipelineStatus.NOT_RUN)

    @property
    def exit_code(self) -> int:
        if self.status is PipelineStatus.FAILED:
            return 1
        if self.status is PipelineStatus.CONFIG_ERROR:
            return 2
        return 0

    def to_dict(self) -> dict:
        return {
            "pipeline": self.pipeline,
            "status": self.status.value,
            "early": self.early,
            "event": self.event.to_dict() if self.event else None,
            "error": self.error,
            "instances": [i.to_dict() for i in self.instances],
        }
