"""Tests for change detection between refresh cycles."""

import pytest

from conftest import NOW
from calculations.changes import ChangeDetector, flatten
from calculations.models import EV_DROPPED, EV_INCREASED, NEW_POSITIVE_EV, Match, Quote, ResultSet, ValueBet


def result_with(fixture_obj, quotes, market_id=1, line=None):
    vb = ValueBet(
        market_id=market_id,
        market_name="Match Winner",
        category="Main",
        selection="1",
        fair_odds=2.0,
        quotes=tuple(Quote(b, 2.0, ev) for b, ev in quotes),
        line=line,
    )
    return ResultSet(matches=(Match(fixture_obj, (vb,)),), last_updated=NOW)


@pytest.fixture
def detector():
    return ChangeDetector(increase_threshold=2.0, drop_threshold=2.0)


class TestChangeDetector:
    """Classification of EV movements per (fixture, market, selection, line, player, bookmaker)."""

    def test_first_cycle_reports_positive_quotes_as_new(self, detector, fixture_obj):
        batch = detector.diff(result_with(fixture_obj, [("A", 3.0), ("B", -1.0)]))
        assert [n.bookmaker for n in batch.new_positive_ev] == ["A"]
        assert batch.new_positive_ev[0].kind == NEW_POSITIVE_EV
        assert batch.ev_increased == [] and batch.ev_dropped == []

    def test_increase_scenario(self, detector, fixture_obj):
        detector.diff(result_with(fixture_obj, [("A", 1.0)]))
        batch = detector.diff(result_with(fixture_obj, [("A", 3.5)]))
        (n,) = batch.ev_increased
        assert n.kind == EV_INCREASED
        assert n.previous_ev == 1.0
        assert n.change == pytest.approx(2.5)
        assert batch.new_positive_ev == []

    def test_drop_scenario(self, detector, fixture_obj):
        detector.diff(result_with(fixture_obj, [("A", 4.0)]))
        batch = detector.diff(result_with(fixture_obj, [("A", 1.5)]))
        (n,) = batch.ev_dropped
        assert n.kind == EV_DROPPED
        assert n.change == pytest.approx(-2.5)

    def test_small_moves_are_silent(self, detector, fixture_obj):
        detector.diff(result_with(fixture_obj, [("A", 1.0)]))
        assert detector.diff(result_with(fixture_obj, [("A", 2.9)])).total() == 0

    def test_increase_to_non_positive_is_silent(self, detector, fixture_obj):
        detector.diff(result_with(fixture_obj, [("A", -5.0)]))
        assert detector.diff(result_with(fixture_obj, [("A", -2.0)])).total() == 0

    def test_drop_from_non_positive_is_silent(self, detector, fixture_obj):
        detector.diff(result_with(fixture_obj, [("A", 0.0)]))
        assert detector.diff(result_with(fixture_obj, [("A", -3.0)])).total() == 0

    def test_each_key_in_at_most_one_category(self, detector, fixture_obj):
        detector.diff(result_with(fixture_obj, [("A", 1.0), ("B", 5.0), ("C", 0.5)]))
        batch = detector.diff(result_with(fixture_obj, [("A", 4.0), ("B", 1.0), ("C", 0.6), ("D", 2.0)]))
        keys = [n.key for n in batch.new_positive_ev + batch.ev_increased + batch.ev_dropped]
        assert len(keys) == len(set(keys)) == 3

    def test_only_previous_cycle_is_remembered(self, detector, fixture_obj):
        detector.diff(result_with(fixture_obj, [("A", 3.0)]))
        detector.diff(result_with(fixture_obj, []))
        batch = detector.diff(result_with(fixture_obj, [("A", 3.0)]))
        assert len(batch.new_positive_ev) == 1

    def test_market_and_line_keep_keys_apart(self, fixture_obj):
        a = flatten(result_with(fixture_obj, [("A", 1.0)], market_id=1))
        b = flatten(result_with(fixture_obj, [("A", 1.0)], market_id=2, line=2.5))
        assert set(a).isdisjoint(b)

    def test_thresholds_are_configurable(self, fixture_obj):
        d = ChangeDetector(increase_threshold=0.5, drop_threshold=5.0)
        d.diff(result_with(fixture_obj, [("A", 1.0), ("B", 6.0)]))
        batch = d.diff(result_with(fixture_obj, [("A", 1.6), ("B", 2.0)]))
        assert len(batch.ev_increased) == 1
        assert batch.ev_dropped == []

    def test_reset_forgets_history(self, detector, fixture_obj):
        detector.diff(result_with(fixture_obj, [("A", 3.0)]))
        detector.reset()
        assert len(detector) == 0
