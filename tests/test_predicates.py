import pytest

from matrixci.predicates import (
    ALWAYS,
    AlwaysRun,
    RunIfChannelEquals,
    RunIfChannelIn,
    SkipIfChannelEquals,
    from_fields,
    only,
    skip,
)

CHANNELS = ["1.36.0", "stable", "beta", "nightly"]


@pytest.mark.parametrize("predicate,expected", [
    (AlwaysRun(), CHANNELS),
    (RunIfChannelEquals("stable"), ["stable"]),
    (SkipIfChannelEquals("1.36.0"), ["stable", "beta", "nightly"]),
    (RunIfChannelIn(frozenset({"beta", "nightly"})), ["beta", "nightly"]),
])
def test_predicates_over_every_channel(predicate, expected):
    assert [c for c in CHANNELS if predicate.applies(c)] == expected


def test_channel_comparison_is_exact():
    assert not RunIfChannelEquals("stable").applies("Stable")
    assert not RunIfChannelEquals("stable").applies("stable ")


def test_referenced_channels():
    assert ALWAYS.channels() == frozenset()
    assert skip("1.36.0").channels() == frozenset({"1.36.0"})
    assert RunIfChannelIn(["a", "b"]).channels() == frozenset({"a", "b"})


def test_only_picks_variant_by_arity():
    assert only("stable") == RunIfChannelEquals("stable")
    assert only("beta", "nightly") == RunIfChannelIn(frozenset({"beta", "nightly"}))
    with pytest.raises(ValueError):
        only()


def test_from_fields():
    assert from_fields() is ALWAYS
    assert from_fields(only_value="stable") == RunIfChannelEquals("stable")
    assert from_fields(only_value=["beta", "nightly"]) == RunIfChannelIn(frozenset({"beta", "nightly"}))
    assert from_fields(skip_value="1.36.0") == SkipIfChannelEquals("1.36.0")


@pytest.mark.parametrize("kwargs", [
    {"only_value": "stable", "skip_value": "beta"},
    {"only_value": []},
    {"only_value": [1.5]},
    {"skip_value": ["a", "b"]},
    {"skip_value": ""},
])
def test_from_fields_rejects_bad_shapes(kwargs):
    with pytest.raises(ValueError):
        from_fields(**kwargs)


def test_describe():
    assert ALWAYS.describe() == "always"
    assert skip("1.36.0").describe() == "skip 1.36.0"
    assert only("nightly", "beta").describe() == "only beta, nightly"
