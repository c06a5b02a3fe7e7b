# predicates.py
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Union


# ---------------------------------------------------------------------
# Step eligibility predicates
# ---------------------------------------------------------------------
# A step declares *when* it runs as one of a closed set of values instead
# of a shell test over an environment variable. Every predicate is pure:
# it only looks at the channel, never at earlier step results.


@dataclass(frozen=True)
class AlwaysRun:
    def applies(self, channel: str) -> bool:
        return True

    def channels(self) -> FrozenSet[str]:
        return frozenset()

    def describe(self) -> str:
        return "always"


@dataclass(frozen=True)
class RunIfChannelEquals:
    channel: str

    def applies(self, channel: str) -> bool:
        return channel == self.channel

    def channels(self) -> FrozenSet[str]:
        return frozenset({self.channel})

    def describe(self) -> str:
        return f"only {self.channel}"


@dataclass(frozen=True)
class SkipIfChannelEquals:
    channel: str

    def applies(self, channel: str) -> bool:
        return channel != self.channel

    def channels(self) -> FrozenSet[str]:
        return frozenset({self.channel})

    def describe(self) -> str:
        return f"skip {self.channel}"


@dataclass(frozen=True)
class RunIfChannelIn:
    members: FrozenSet[str]

    def __post_init__(self):
        # accept any iterable, store a frozenset so the predicate stays hashable
        object.__setattr__(self, "members", frozenset(self.members))

    def applies(self, channel: str) -> bool:
        return channel in self.members

    def channels(self) -> FrozenSet[str]:
        return self.members

    def describe(self) -> str:
        return "only " + ", ".join(sorted(self.members))


PREDICATE_TYPES = (AlwaysRun, RunIfChannelEquals, SkipIfChannelEquals, RunIfChannelIn)
Predicate = Union[AlwaysRun, RunIfChannelEquals, SkipIfChannelEquals, RunIfChannelIn]

ALWAYS = AlwaysRun()


def always() -> AlwaysRun:
    return ALWAYS


def only(*channels: str) -> Predicate:
    """`only("stable")` or `only("stable", "beta")`."""
    if not channels:
        raise ValueError("only() needs at least one channel")
    if len(channels) == 1:
        return RunIfChannelEquals(channels[0])
    return RunIfChannelIn(frozenset(channels))


def skip(channel: str) -> SkipIfChannelEquals:
    return SkipIfChannelEquals(channel)


def from_fields(only_value: str | Iterable[str] | None = None, skip_value: str | None = None) -> Predicate:
    """
    Build a predicate from descriptor fields (`only:` / `skip:`).

    Raises ValueError if both are given or a value has the wrong shape;
    the loader turns that into a ConfigurationError.
    """
    if only_value is not None and skip_value is not None:
        raise ValueError("'only' and 'skip' are mutually exclusive")

    if skip_value is not None:
        if not isinstance(skip_value, str) or not skip_value:
            raise ValueError(f"'skip' must be a channel name, got {skip_value!r}")
        return SkipIfChannelEquals(skip_value)

    if only_value is not None:
        if isinstance(only_value, str):
            values = [only_value]
        else:
            values = list(only_value)
        if not values or not all(isinstance(v, str) and v for v in values):
            raise ValueError(f"'only' must be a channel name or a list of them, got {only_value!r}")
        return only(*values)

    return ALWAYS
