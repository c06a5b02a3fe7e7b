import pytest

from matrixci.aggregate import aggregate, decided
from matrixci.model import JobInstance, Outcome, PipelineStatus


def _inst(index, channel, outcome, allow=False):
    return JobInstance(index=index, channel=channel, allow_failure=allow, outcome=outcome)


def test_allowed_failure_does_not_fail_pipeline():
    outcome = aggregate([
        _inst(0, "stable", Outcome.PASSED),
        _inst(1, "nightly", Outcome.FAILED, allow=True),
        _inst(2, "1.0", Outcome.PASSED),
    ])
    assert outcome.status is PipelineStatus.PASSED
    assert outcome.exit_code == 0
    assert [i.category for i in outcome.instances] == ["passed", "failed (allowed)", "passed"]


def test_required_failure_fails_pipeline():
    outcome = aggregate([
        _inst(0, "stable", Outcome.FAILED),
        _inst(1, "nightly", Outcome.FAILED, allow=True),
    ])
    assert outcome.status is PipelineStatus.FAILED
    assert outcome.exit_code == 1


def test_empty_matrix_passes():
    outcome = aggregate([])
    assert outcome.status is PipelineStatus.PASSED
    assert outcome.instances == []


def test_undetermined_outcome_raises():
    with pytest.raises(ValueError):
        aggregate([_inst(0, "stable", Outcome.RUNNING), _inst(1, "beta", Outcome.PASSED)])


def test_running_allowed_instance_does_not_block_result():
    outcome = aggregate([
        _inst(0, "stable", Outcome.PASSED),
        _inst(1, "nightly", Outcome.RUNNING, allow=True),
    ], early=True)
    assert outcome.status is PipelineStatus.PASSED
    assert outcome.early
    assert outcome.instances[1].category == "running (allowed)"


def test_decided_without_fast_finish_waits_for_everything():
    instances = [
        _inst(0, "stable", Outcome.FAILED),
        _inst(1, "beta", Outcome.RUNNING),
        _inst(2, "nightly", Outcome.PENDING, allow=True),
    ]
    assert not decided(instances, fast_finish=False)
    assert decided(instances, fast_finish=True)


def test_decided_with_fast_finish_ignores_allowed_instances():
    instances = [
        _inst(0, "stable", Outcome.PASSED),
        _inst(1, "beta", Outcome.PASSED),
        _inst(2, "nightly", Outcome.RUNNING, allow=True),
    ]
    assert decided(instances, fast_finish=True)
    assert not decided(instances, fast_finish=False)


def test_fast_finish_still_waits_for_required_instances():
    instances = [
        _inst(0, "stable", Outcome.PASSED),
        _inst(1, "beta", Outcome.RUNNING),
        _inst(2, "nightly", Outcome.FAILED, allow=True),
    ]
    assert not decided(instances, fast_finish=True)


def test_report_payload():
    outcome = aggregate([_inst(0, "stable", Outcome.PASSED)], pipeline="ci")
    payload = outcome.to_dict()
    assert payload["pipeline"] == "ci"
    assert payload["status"] == "passed"
    assert payload["instances"][0]["channel"] == "stable"
    assert payload["instances"][0]["category"] == "passed"
