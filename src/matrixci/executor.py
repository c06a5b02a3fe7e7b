# executor.py
from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Dict, Optional, Protocol

from .model import ExitStatus, JobInstance, Step

DEFAULT_CHANNEL_VAR = "MATRIXCI_CHANNEL"

# Only the tail of a step's output is kept; it is shown on failure.
OUTPUT_TAIL = 4000

TOOL_HINTS = {
    "cargo": "Install a Rust toolchain (rustup) or fix PATH.",
    "rustup": "Install rustup from https://rustup.rs or fix PATH.",
    "npm": "Install Node.js (includes npm) or fix PATH.",
    "pytest": "Install pytest (e.g., pip install pytest).",
    "ruff": "Install ruff (e.g., pip install ruff).",
    "docker": "Install Docker and ensure the daemon is running.",
    "python3": "Install Python 3 or fix PATH (python3).",
}


def hint_for(step: Step, exit_code: int) -> Optional[str]:
    """Exit 127 from the shell means 'command not found'."""
    if exit_code != 127:
        return None
    tool = step.run.strip().split()[0] if step.run.strip() else ""
    return TOOL_HINTS.get(tool)


class StepExecutor(Protocol):
    def run_step(self, step: Step, instance: JobInstance) -> ExitStatus:
        ...


class ShellExecutor:
    """
    Runs each step through the shell and waits for it to exit.

    The channel is exported to the step as `channel_var` so commands can
    still branch on it, and the step's cwd is resolved against repo_root.
    """

    def __init__(
        self,
        repo_root: str | Path = ".",
        *,
        env: Optional[Dict[str, str]] = None,
        channel_var: str = DEFAULT_CHANNEL_VAR,
    ):
        self.repo_root = Path(repo_root).resolve()
        self.env = dict(env or {})
        self.channel_var = channel_var

    def environment(self, instance: JobInstance) -> Dict[str, str]:
        env = os.environ.copy()
        env.update(self.env)
        env[self.channel_var] = instance.channel
        env["MATRIXCI_INSTANCE"] = str(instance.index)
        return env

    def run_step(self, step: Step, instance: JobInstance) -> ExitStatus:
        cwd = (self.repo_root / (step.cwd or ".")).resolve()
        if not cwd.is_dir():
            return ExitStatus(
                step=step.name,
                exit_code=-1,
                output=f"[{instance.label}] step '{step.name}' cwd not found: {cwd}",
            )

        try:
            proc = subprocess.run(
                step.run,
                shell=True,
                cwd=str(cwd),
                env=self.environment(instance),
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            return ExitStatus(step=step.name, exit_code=-1, output=f"could not spawn shell: {e}")

        return ExitStatus(
            step=step.name,
            exit_code=proc.returncode,
            output=(proc.stdout or "")[-OUTPUT_TAIL:],
        )
