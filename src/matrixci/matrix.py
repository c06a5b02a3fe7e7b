# matrix.py
from __future__ import annotations

from typing import Iterable, List, Sequence

from .model import EventContext, JobInstance, Step


def expand(
    channels: Sequence[str],
    event: EventContext | None = None,
    allow_failures: Iterable[str] = (),
) -> List[JobInstance]:
    """
    One job instance per channel, in declaration order.

    Duplicate channels are kept and become independent instances; the
    index is what tells them apart. The event is accepted for symmetry
    with the gate: every channel maps to exactly one instance per event.
    """
    allowed = frozenset(allow_failures)
    return [
        JobInstance(index=i, channel=ch, allow_failure=ch in allowed)
        for i, ch in enumerate(channels)
    ]


def select_steps(channel: str, steps: Sequence[Step]) -> List[Step]:
    """Eligible steps for `channel`, keeping declaration order."""
    return [s for s in steps if s.eligible(channel)]


def skipped_steps(channel: str, steps: Sequence[Step]) -> List[Step]:
    return [s for s in steps if not s.eligible(channel)]
