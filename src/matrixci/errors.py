# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass
class CIError(Exception):
    """
    Structured CI error with enough context for:
      - clean CLI output
      - the JSON report
      - debugging without full tracebacks
    """
    kind: str
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


class ConfigurationError(CIError):
    """
    Raised when a pipeline or event cannot be instantiated.

    Collects every problem found instead of stopping at the first one,
    so a broken descriptor can be fixed in a single pass.
    """

    def __init__(self, problems: List[str], source: str | None = None):
        details = {"source": source} if source else {}
        super().__init__(
            kind="ConfigurationError",
            message="; ".join(problems) if problems else "invalid configuration",
            details=details,
        )
        self.problems = list(problems)
        self.source = source

    def __str__(self) -> str:
        head = "ConfigurationError"
        if self.source:
            head += f" ({self.source})"
        if len(self.problems) == 1:
            return f"{head}: {self.problems[0]}"
        return "\n".join([f"{head}:"] + [f"  - {p}" for p in self.problems])


@dataclass
class StepFailure(Exception):
    """A step's process exited non-zero (or could not be spawned)."""
    instance: str
    step: str
    cmd: str
    exit_code: int
    output: str = ""

    def __str__(self) -> str:
        return f"[{self.instance}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


class InvalidTransition(RuntimeError):
    """A job instance was moved out of a terminal state or skipped a state."""

    def __init__(self, instance: str, current: str, target: str):
        super().__init__(f"[{instance}] invalid transition {current} -> {target}")
        self.instance = instance
        self.current = current
        self.target = target
