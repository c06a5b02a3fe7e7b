# gate.py
from __future__ import annotations

from .model import EventContext, EventType


def evaluate(event: EventContext, mainline: str = "master") -> bool:
    """
    Decide whether an event instantiates the pipeline at all.

    Non-push events always run. A push runs unless it carries a tag
    and is on a branch other than `mainline`.
    """
    if event.event_type is not EventType.PUSH:
        return True
    return not event.has_tag or event.branch == mainline


def describe(event: EventContext, mainline: str = "master") -> str:
    """Human readable reason for the gate decision (console + plan)."""
    if event.event_type is not EventType.PUSH:
        return f"{event.event_type.value} events always run"
    if not event.has_tag:
        return "untagged push"
    if event.branch == mainline:
        return f"tagged push on mainline {mainline!r}"
    return f"tagged push ({event.tag}) on non-mainline branch {event.branch!r}"
