# src/matrixci/dsl.py
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .model import Pipeline, Step, StepKind
from .predicates import ALWAYS, Predicate, from_fields
from .predicates import always, only, skip  # noqa: F401  (re-exported for workflow files)


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(
    name: str,
    cmd: str,
    *,
    kind: StepKind | str = StepKind.BUILD,
    when: Predicate | None = None,
    only: str | Sequence[str] | None = None,
    skip: str | None = None,
    cwd: str | None = None,
) -> Step:
    """
    Create a shell step.

    Eligibility is either an explicit predicate (`when=`) or the
    `only=` / `skip=` shorthand, never both.
    """
    if when is not None and (only is not None or skip is not None):
        raise ValueError(f"sh({name!r}): pass either when= or only=/skip=, not both")
    predicate = when if when is not None else from_fields(only, skip)
    return Step(name=name, run=cmd, kind=StepKind(kind), when=predicate, cwd=cwd)


def setup(name: str, cmd: str, **kw) -> Step:
    """Component installs and other toolchain preparation."""
    return sh(name, cmd, kind=StepKind.SETUP, **kw)


def lint(name: str, cmd: str, **kw) -> Step:
    return sh(name, cmd, kind=StepKind.LINT, **kw)


def audit(name: str, cmd: str, **kw) -> Step:
    return sh(name, cmd, kind=StepKind.AUDIT, **kw)


def build(name: str, cmd: str, **kw) -> Step:
    return sh(name, cmd, kind=StepKind.BUILD, **kw)


def test(name: str, cmd: str, **kw) -> Step:
    return sh(name, cmd, kind=StepKind.TEST, **kw)


test.__test__ = False  # keep pytest from collecting the helper


# ---------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------

class Matrix:
    """
    Channel list plus the channels allowed to fail.

    Example:
        matrix("1.36.0", "stable", "beta", "nightly").allow_failure("nightly")
    """
    def __init__(self, channels: Iterable[str]):
        self.channels = list(channels)
        self.allow_failures: List[str] = []

    def allow_failure(self, *channels: str) -> Matrix:
        self.allow_failures.extend(channels)
        return self


def matrix(*channels: str) -> Matrix:
    return Matrix(channels)


# ---------------------------------------------------------------------
# Pipeline helpers
# ---------------------------------------------------------------------

def pipeline(
    name: str,
    *steps: Step,
    channels: Matrix | Sequence[str],
    allow_failures: Optional[Sequence[str]] = None,
    fast_finish: bool = False,
    mainline: str = "master",
) -> Pipeline:
    """
    Functional pipeline helper:

        pipeline("ci", sh(...), sh(...), channels=matrix("stable", "nightly"))
    """
    if isinstance(channels, Matrix):
        chans = list(channels.channels)
        allowed = list(channels.allow_failures) + list(allow_failures or [])
    else:
        chans = list(channels)
        allowed = list(allow_failures or [])
    return Pipeline(
        name=name,
        channels=chans,
        steps=list(steps),
        allow_failures=allowed,
        fast_finish=fast_finish,
        mainline=mainline,
    )


class PipelineBuilder:
    def __init__(self, name: str):
        self.name = name
        self._channels: list[str] = []
        self._allow_failures: list[str] = []
        self._steps: list[Step] = []
        self._fast_finish = False
        self._mainline = "master"

    def channels(self, *channels: str):
        self._channels.extend(channels)
        return self

    def allow_failure(self, *channels: str):
        self._allow_failures.extend(channels)
        return self

    def fast_finish(self, enabled: bool = True):
        self._fast_finish = enabled
        return self

    def mainline(self, branch: str):
        self._mainline = branch
        return self

    def define_step(
        self,
        name: str,
        run: str,
        *,
        kind: StepKind | str = StepKind.BUILD,
        when: Predicate = ALWAYS,
        cwd: str | None = None,
    ):
        self._steps.append(Step(name=name, run=run, kind=StepKind(kind), when=when, cwd=cwd))
        return self

    def add(self, *steps: Step):
        self._steps.extend(steps)
        return self

    def build(self) -> Pipeline:
        p = Pipeline(
            name=self.name,
            channels=list(self._channels),
            steps=list(self._steps),
            allow_failures=list(self._allow_failures),
            fast_finish=self._fast_finish,
            mainline=self._mainline,
        )
        p.validate()
        return p


def builder(name: str) -> PipelineBuilder:
    """Convenience: builder('ci').channels(...).define_step(...).build()"""
    return PipelineBuilder(name)
