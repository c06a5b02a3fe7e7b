# git.py
# Small, focused wrapper around the Git CLI.
# The rest of the codebase asks this module for branch/tag facts and never
# calls subprocess("git ...") directly.

from __future__ import annotations

import subprocess
from typing import Optional


def _git(args: list[str], cwd: Optional[str] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Args:
        args: List of git arguments (e.g. ["rev-parse", "HEAD"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError if git exits non-zero,
        FileNotFoundError if git is not installed.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def current_branch(cwd: Optional[str] = None) -> str:
    """
    Name of the checked out branch.

    On a detached HEAD git answers "HEAD"; that is returned as-is so the
    event still carries a branch.
    """
    return _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)


def current_tag(cwd: Optional[str] = None) -> Optional[str]:
    """
    Tag pointing exactly at HEAD, or None.

    `git describe --exact-match` exits non-zero when HEAD is untagged,
    which is the normal case, not an error.
    """
    try:
        return _git(["describe", "--tags", "--exact-match", "HEAD"], cwd=cwd) or None
    except subprocess.CalledProcessError:
        return None


def get_remote_url(remote: str = "origin", cwd: Optional[str] = None) -> str:
    return _git(["remote", "get-url", remote], cwd=cwd)
