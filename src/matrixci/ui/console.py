"""Console output formatting utilities for matrixci."""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from matrixci.model import InstanceReport, PipelineOutcome
    from matrixci.runner import PipelinePlan


class Console:
    """Centralized console output formatting.

    Job instances print from worker threads, so every method writes its
    lines while holding one lock; a block never interleaves with another.
    """

    def __init__(self, debug: bool = False, stream=None):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            stream: Where normal output goes (defaults to sys.stdout at call time)
        """
        self.debug = debug
        self._stream = stream
        self._lock = threading.RLock()

    @property
    def stream(self):
        return self._stream or sys.stdout

    def _emit(self, *lines: str, err: bool = False) -> None:
        out = sys.stderr if err else self.stream
        with self._lock:
            for line in lines:
                print(line, file=out)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._emit(f"\n{title}", "-" * len(title))

    def print_run_started(
        self,
        repository: str,
        pipeline: str,
        workflow: str,
        event: str,
        channel_count: int,
    ) -> None:
        """Print run start information."""
        self._emit(
            "\nRUN STARTED",
            f"Repository: {repository}",
            f"Pipeline: {pipeline}",
            f"Workflow: {workflow}",
            f"Event: {event}",
            f"Channels: {channel_count}",
            "",
        )

    def print_gate(self, open_: bool, reason: str) -> None:
        verdict = "run" if open_ else "not run"
        self._emit(f"GATE: {verdict} ({reason})")

    def print_plan(self, plan: "PipelinePlan") -> None:
        """Print selected/skipped steps per job instance."""
        if not plan.gate_open:
            return
        if not plan.instances:
            self._emit("PLAN: empty matrix (nothing to run)")
            return
        lines = ["PLAN:"]
        for inst in plan.instances:
            flag = " [allow failure]" if inst.allow_failure else ""
            lines.append(f"  {inst.label}{flag}")
            skipped = {s.name for s in plan.skipped(inst)}
            for step in plan.pipeline.steps:
                if step.name in skipped:
                    lines.append(f"    - {step.name} (skipped: {step.when.describe()})")
                else:
                    lines.append(f"    + {step.name} [{step.kind.value}]")
        self._emit(*lines)

    def print_instance_start(self, label: str) -> None:
        self._emit(f"\nJOB STARTED: {label}")

    def print_step(self, label: str, name: str) -> None:
        """Print step start message."""
        self._emit(f"[{label}] ▶ {name}")

    def print_step_failure(
        self,
        label: str,
        step: str,
        exit_code: int,
        hint: Optional[str] = None,
        output: str = "",
    ) -> None:
        """
        Print failure message for a step.

        The captured output tail is shown in debug mode; otherwise only
        its last line.
        """
        lines = [f"[{label}] STEP FAILED: {step}", f"Exit code: {exit_code}"]
        if hint:
            lines.append(f"Hint: {hint}")
        text = output.rstrip()
        if text:
            if self.debug:
                lines.append("Output:")
                lines.extend(f"  {ln}" for ln in text.splitlines())
            else:
                lines.append(f"Error: {text.splitlines()[-1]}")
        self._emit(*lines)

    def print_instance_done(self, label: str, outcome: str, allow_failure: bool) -> None:
        suffix = " (allowed)" if allow_failure and outcome == "failed" else ""
        self._emit(f"[{label}] STATUS: {outcome}{suffix}")

    def print_results(self, outcome: "PipelineOutcome") -> None:
        """Print final results summary."""
        lines = ["\n" + "=" * 40, "RESULTS", "=" * 40]
        for inst in outcome.instances:
            detail = ""
            if inst.failed_step:
                detail = f" at '{inst.failed_step}' (exit={inst.exit_code})"
            lines.append(f"  {inst.channel}#{inst.index}: {inst.category.upper()}{detail}")
        if outcome.early:
            lines.append("  (fast finish: reported before allow-failure jobs completed)")
        lines.append(f"PIPELINE: {outcome.status.value.upper()}")
        self._emit(*lines)

    def print_late_result(self, report: "InstanceReport") -> None:
        self._emit(f"LATE RESULT: {report.channel}#{report.index}: {report.category.upper()}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        lines = [f"\nERROR: {title}", message]
        if details:
            lines.extend(f"  {d}" for d in details)
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._emit(*lines, err=True)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            with self._lock:
                traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            self._emit(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._emit(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._emit(f"[DEBUG] {message}", err=True)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
