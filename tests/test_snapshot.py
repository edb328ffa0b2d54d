"""Tests for snapshot eligibility, batched writes, purge and line-movement analysis."""

from datetime import timedelta

from conftest import NOW
from calculations.models import Match, Quote, ResultSet, ValueBet
from calculations.movement import find_movers, line_movement, load_snapshots_since, summarize_movement, top_movers
from calculations.snapshot import VALUE_CAP, SnapshotWriter, snapshot_eligible_bets
from lsportsOdds.fixtures import Fixture
from storage.store import StoreError


def match(fid, kickoff, *evs, odds=2.2):
    bets = tuple(
        ValueBet(1, "Match Winner", "Main", f"sel{i}", 2.0, (Quote("Bet365", odds, ev),))
        for i, ev in enumerate(evs)
    )
    return Match(Fixture(fid, "H", "A", 67, "Premier League", kickoff), bets)


class TestEligibility:
    def test_window_and_threshold(self):
        rs = ResultSet(matches=(
            match(1, NOW + timedelta(hours=2), 5.0, 2.9, 3.0),
            match(2, NOW + timedelta(hours=49), 8.0),
            match(3, NOW - timedelta(minutes=1), 8.0),
            match(4, NOW, 8.0),
            match(5, NOW + timedelta(hours=48), 8.0),
        ))
        rows = snapshot_eligible_bets(rs, NOW)
        assert sorted((r["fixture_id"], r["ev"]) for r in rows) == [(1, 3.0), (1, 5.0), (5, 8.0)]

    def test_row_shape(self):
        (row,) = snapshot_eligible_bets(ResultSet(matches=(match(1, NOW + timedelta(hours=1), 4.0),)), NOW)
        assert row["home_team"] == "H"
        assert row["best_bookmaker"] == "Bet365"
        assert row["fair_odds"] == 2.0
        assert row["bookmaker_count"] == 1
        assert row["created_at"] == NOW

    def test_values_are_capped(self):
        rs = ResultSet(matches=(match(1, NOW + timedelta(hours=1), 5000.0, odds=1500.0),))
        (row,) = snapshot_eligible_bets(rs, NOW)
        assert row["best_odds"] == VALUE_CAP
        assert row["ev"] == VALUE_CAP


class FlakyStore:
    """Fails every second insert_batch call."""

    def __init__(self):
        self.batches = []

    def insert_batch(self, table, rows):
        self.batches.append(len(rows))
        if len(self.batches) % 2 == 0:
            raise StoreError("boom")
        return len(rows)


class TestSnapshotWriter:
    def test_chunks_and_skips_failed_batches(self):
        store = FlakyStore()
        writer = SnapshotWriter(store, batch_size=2)
        assert writer.save([{"i": i} for i in range(5)]) == 3
        assert store.batches == [2, 2, 1]

    def test_nothing_to_save(self):
        assert SnapshotWriter(FlakyStore()).save([]) == 0

    def test_round_trip_and_purge(self, store):
        writer = SnapshotWriter(store)
        rs = ResultSet(matches=(match(1, NOW + timedelta(hours=1), 5.0),))
        assert writer.snapshot(rs, NOW) == 1
        store.insert_batch("odds_snapshots", [{
            "fixture_id": 9, "selection": "x", "kickoff": NOW - timedelta(days=4), "created_at": NOW - timedelta(days=4),
        }])
        assert writer.purge_older_than(timedelta(days=3), NOW) == 1
        assert [r["fixture_id"] for r in store.select("odds_snapshots")] == [1]


def snap(fid, minutes, ev, odds=2.0, selection="1", line=None):
    return {
        "fixture_id": fid, "market_id": 1, "market_name": "Match Winner", "selection": selection, "line": line,
        "kickoff": NOW + timedelta(hours=6), "home_team": "H", "away_team": "A", "league": "PL",
        "best_odds": odds, "best_bookmaker": "Bet365", "fair_odds": 1.9, "ev": ev, "bookmaker_count": 5,
        "created_at": NOW - timedelta(minutes=minutes),
    }


class TestMovement:
    def test_summary_needs_two_rows(self):
        assert summarize_movement([snap(1, 10, 3.0)]) is None

    def test_summary_direction(self):
        m = summarize_movement([snap(1, 30, 3.0, 2.0), snap(1, 10, 5.5, 2.1)])
        assert m["evChange"] == 2.5
        assert m["oddsChange"] == 0.1
        assert m["direction"] == "up"
        assert m["snapshotCount"] == 2

    def test_line_movement_from_store(self, store):
        store.insert_batch("odds_snapshots", [snap(1, 60, 3.0), snap(1, 20, 4.0), snap(1, 25 * 60, 9.0), snap(2, 20, 4.0)])
        out = line_movement(store, 1, 1, "1", now=NOW)
        assert [s["ev"] for s in out["snapshots"]] == [3.0, 4.0]
        assert out["movement"]["direction"] == "up"

    def test_find_movers_groups_and_sorts(self):
        rows = sorted([
            snap(1, 60, 3.0), snap(1, 10, 6.0),
            snap(2, 60, 8.0), snap(2, 10, 3.0),
            snap(3, 60, 3.0), snap(3, 10, 3.2),
            snap(4, 10, 3.0), snap(4, 10, 9.0),
            snap(5, 10, 7.0),
        ], key=lambda r: r["created_at"])
        movers, groups = find_movers(rows, min_change=0.5)
        assert groups == 5
        assert [(m["fixtureId"], m["evChange"], m["direction"]) for m in movers] == [(2, -5.0, "down"), (1, 3.0, "up")]
        assert len(movers[0]["history"]) == 2

    def test_lines_are_separate_bets(self):
        rows = [snap(1, 60, 3.0, line=2.5), snap(1, 10, 6.0, line=3.5)]
        movers, groups = find_movers(rows)
        assert groups == 2 and movers == []

    def test_pagination(self, store):
        store.insert_batch("odds_snapshots", [snap(1, i, 3.0) for i in range(7)])
        rows = load_snapshots_since(store, NOW - timedelta(hours=1), page_size=3)
        assert len(rows) == 7
        assert rows[0]["created_at"] < rows[-1]["created_at"]
        assert len(load_snapshots_since(store, NOW - timedelta(hours=1), page_size=3, max_rows=5)) == 6

    def test_top_movers_empty(self, store):
        out = top_movers(store, now=NOW)
        assert out["movers"] == [] and out["totalFound"] == 0
