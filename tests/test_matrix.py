from pathlib import Path

import pytest

from matrixci.loader import load_pipeline
from matrixci.matrix import expand, select_steps, skipped_steps
from matrixci.model import EventContext, EventType, Outcome

EVENT = EventContext(EventType.PUSH, "master")
WORKFLOW = Path(__file__).resolve().parent.parent / "matrixci_workflow.py"


def test_one_instance_per_channel_in_order():
    instances = expand(["1.36.0", "stable", "beta", "nightly"], EVENT, allow_failures=["nightly"])
    assert [i.channel for i in instances] == ["1.36.0", "stable", "beta", "nightly"]
    assert [i.index for i in instances] == [0, 1, 2, 3]
    assert [i.allow_failure for i in instances] == [False, False, False, True]
    assert all(i.outcome is Outcome.PENDING for i in instances)


def test_duplicates_become_independent_instances():
    instances = expand(["stable", "stable", "nightly"], EVENT, allow_failures=["stable"])
    assert len(instances) == 3
    assert len({i.index for i in instances}) == 3
    assert [i.label for i in instances] == ["stable#0", "stable#1", "nightly#2"]
    assert instances[0] is not instances[1]
    assert instances[0].allow_failure and instances[1].allow_failure


def test_empty_channel_list():
    assert expand([], EVENT) == []


@pytest.fixture(scope="module")
def rust_pipeline():
    return load_pipeline(WORKFLOW)


def test_selection_is_an_order_preserving_subsequence(rust_pipeline):
    declared = [s.name for s in rust_pipeline.steps]
    for channel in rust_pipeline.channels:
        selected = [s.name for s in select_steps(channel, rust_pipeline.steps)]
        positions = [declared.index(n) for n in selected]
        assert positions == sorted(positions)
        skipped = [s.name for s in skipped_steps(channel, rust_pipeline.steps)]
        assert sorted(selected + skipped) == sorted(declared)


def test_msrv_skips_clippy(rust_pipeline):
    names = [s.name for s in select_steps("1.36.0", rust_pipeline.steps)]
    assert "Clippy" not in names
    assert "Install clippy" not in names
    assert "Audit dependencies" not in names
    assert names[-2:] == ["Build", "Test"]


def test_stable_runs_everything(rust_pipeline):
    assert select_steps("stable", rust_pipeline.steps) == rust_pipeline.steps


def test_nightly_has_no_audit(rust_pipeline):
    names = [s.name for s in select_steps("nightly", rust_pipeline.steps)]
    assert "Install cargo-audit" not in names
    assert "Clippy" in names
