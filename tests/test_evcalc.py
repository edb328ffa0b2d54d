"""Tests for the consensus/EV engine."""

from datetime import timedelta

import pytest

from conftest import NOW, FakeProvider, fixture_record, four_book_market, market_record
from calculations.evcalc import (
    EmptyResultError,
    RefreshEngine,
    build_value_bets,
    compute_ev_pct,
    compute_result_set,
    median,
    select_fixtures,
)
from calculations.normalize import normalize_bookmaker
from calculations.state import CacheState
from lsportsOdds.catalogue import MarketInfo, TARGET_MARKETS
from lsportsOdds.config import FIXTURES_ENDPOINT, MARKETS_ENDPOINT
from lsportsOdds.fixtures import Fixture, FixtureCache

MARKETS = {1: MarketInfo("Match Winner", "Main")}


def fx(fid, hours=5, league_id=67):
    return Fixture(fid, f"H{fid}", f"A{fid}", league_id, "Premier League", NOW + timedelta(hours=hours))


def event(fid, *markets):
    return {"FixtureId": fid, "Markets": list(markets)}


class TestMedian:
    def test_odd_length_is_middle_element(self):
        assert median([3.0, 1.0, 2.0]) == 2.0

    def test_even_length_is_mean_of_middle_pair(self):
        assert median([2.0, 2.1, 2.05, 1.95]) == pytest.approx(2.025)

    def test_empty(self):
        assert median([]) is None


class TestEV:
    def test_known_scenario(self):
        """Fair price 2.025, offered 2.3 -> about 13.58% EV."""
        assert compute_ev_pct(1 / 2.025, 2.3) == pytest.approx(13.58, abs=0.005)

    def test_fair_price_is_zero_ev(self):
        assert compute_ev_pct(0.5, 2.0) == pytest.approx(0.0)


class TestNormalizeBookmaker:
    @pytest.mark.parametrize("raw,expected", [
        ("Unibet.fr", "Unibet"),
        ("bet365 (ES)", "Bet365"),
        ("Betway UK", "BetWay"),
        ("My1xBet", "1XBet"),
        ("Pinnacle", "Pinnacle"),
    ])
    def test_regional_variants_collapse(self, raw, expected):
        assert normalize_bookmaker(raw) == expected


class TestBuildValueBets:
    """Grouping, thresholds and per-quote EV."""

    def test_consensus_and_best_quote(self, match_winner):
        (vb,) = build_value_bets(four_book_market(), 1, match_winner)
        assert vb.fair_odds == pytest.approx(2.025)
        assert vb.bookmaker_count == 4
        assert vb.best_bookmaker == "Unibet"
        assert vb.best_ev == pytest.approx((2.1 / 2.025 - 1) * 100)
        assert vb.best_ev == max(q.ev for q in vb.quotes)
        for q in vb.quotes:
            assert q.ev == pytest.approx((q.price / vb.fair_odds - 1) * 100)

    def test_fewer_than_four_bookmakers_dropped(self, match_winner):
        rec = market_record(1, {"A": [("1", 5.0)], "B": [("1", 5.5)], "C": [("1", 9.0)]})
        assert build_value_bets(rec, 1, match_winner) == []

    def test_regional_duplicates_count_once(self, match_winner):
        rec = market_record(1, {
            "Bet365": [("1", 2.0)],
            "bet365.es": [("1", 2.2)],
            "Unibet": [("1", 2.1)],
            "Pinnacle": [("1", 2.05)],
        })
        assert build_value_bets(rec, 1, match_winner) == []

    def test_duplicate_bookmaker_keeps_best_price(self, match_winner):
        rec = market_record(1, {
            "Bet365": [("1", 2.0)],
            "bet365.es": [("1", 2.2)],
            "Unibet": [("1", 2.1)],
            "Pinnacle": [("1", 2.05)],
            "William Hill": [("1", 1.9)],
        })
        (vb,) = build_value_bets(rec, 1, match_winner)
        prices = {q.bookmaker: q.price for q in vb.quotes}
        assert prices["Bet365"] == 2.2

    def test_invalid_prices_ignored(self, match_winner):
        rec = market_record(1, {b: [("1", p)] for b, p in zip("ABCD", (2.0, 1.0, "n/a", 2.1))})
        assert build_value_bets(rec, 1, match_winner) == []

    def test_non_finite_price_ignored(self, match_winner):
        rec = four_book_market()
        rec["ProviderMarkets"][0]["Bets"][0]["Price"] = "Infinity"
        assert build_value_bets(rec, 1, match_winner) == []
        rec = four_book_market()
        rec["ProviderMarkets"][1]["Bets"][0]["Price"] = "nan"
        assert build_value_bets(rec, 1, match_winner) == []

    def test_lines_are_separate_selections(self):
        ou = MarketInfo("Under/Over", "Goals")
        books = {b: [("Over", 1.9, "2.5"), ("Over", 2.5, "3.5")] for b in "ABCD"}
        bets = build_value_bets(market_record(2, books), 2, ou)
        assert sorted(vb.line for vb in bets) == [2.5, 3.5]

    def test_player_name_prefixed_when_configured(self):
        rec = market_record(2351, {b: [] for b in "ABCD"})
        for pm in rec["ProviderMarkets"]:
            pm["Bets"] = [{"Name": "Over", "Price": "2.0", "Line": "0.5", "PlayerName": "Salah"}]
        (vb,) = build_value_bets(rec, 2351, TARGET_MARKETS[2351])
        assert vb.selection == "Salah Over"
        assert vb.player_name == "Salah"
        assert vb.is_player_prop


class TestComputeResultSet:
    def test_no_upcoming_fixtures_skips_market_fetch(self):
        calls = []
        rs = compute_result_set([fx(1, hours=-1)], [67], MARKETS, NOW, lambda f, m: calls.append(f) or [])
        assert calls == []
        assert rs.matches == ()
        assert rs.last_updated == NOW

    def test_select_fixtures_orders_and_caps(self):
        fixtures = [fx(3, hours=9), fx(1, hours=2), fx(2, hours=2), fx(4, hours=1, league_id=999), fx(5, hours=0)]
        picked = select_fixtures(fixtures, [67], NOW, max_fixtures=2)
        assert [f.fixture_id for f in picked] == [1, 2]

    def test_builds_matches_sorted_by_best_ev(self):
        events = [
            event(1, four_book_market(home_prices=(2.0, 2.02, 2.01, 1.99))),
            event(2, four_book_market()),
        ]
        rs = compute_result_set([fx(1), fx(2)], [67], MARKETS, NOW, lambda f, m: events)
        assert [m.fixture_id for m in rs.matches] == [2, 1]
        assert rs.stats.total_bets == 2
        assert rs.stats.fixture_count == 2
        assert "Unibet" in rs.bookmakers

    def test_unknown_fixture_and_market_ignored(self):
        events = [event(99, four_book_market()), event(1, four_book_market(market_id=424242))]
        rs = compute_result_set([fx(1)], [67], MARKETS, NOW, lambda f, m: events)
        assert rs.matches == ()

    def test_empty_result_error_becomes_empty_set(self):
        def boom(f, m):
            raise EmptyResultError("nothing")

        rs = compute_result_set([fx(1)], [67], MARKETS, NOW, boom, refresh_count=4)
        assert rs.matches == ()
        assert rs.stats.refresh_count == 4

    def test_idempotent(self):
        events = [event(1, four_book_market()), event(2, four_book_market(home_prices=(3.0, 3.2, 3.1, 2.9)))]
        a = compute_result_set([fx(1), fx(2)], [67], MARKETS, NOW, lambda f, m: events)
        b = compute_result_set([fx(1), fx(2)], [67], MARKETS, NOW, lambda f, m: events)
        assert a == b


class TestRefreshEngine:
    def make(self, markets_body):
        provider = FakeProvider({
            FIXTURES_ENDPOINT: {"Body": [fixture_record(1)]},
            MARKETS_ENDPOINT: {"Header": {"ServerTimestamp": 9}, "Body": markets_body},
        })
        state = CacheState()
        engine = RefreshEngine(
            provider,
            FixtureCache(provider),
            state,
            target_leagues=[67],
            target_markets=MARKETS,
            clock=lambda: NOW,
        )
        return provider, state, engine

    def test_refresh_swaps_state(self):
        provider, state, engine = self.make([event(1, four_book_market())])
        rs = engine.refresh()
        assert state.current is rs
        assert rs.stats.refresh_count == 1
        assert engine.refresh().stats.refresh_count == 2
        assert provider.calls[1] == (MARKETS_ENDPOINT, {"Fixtures": [1], "Markets": [1]})
        assert engine.metadata["lastServerTimestamp"] == 9
        assert state.is_loading is False

    def test_empty_body_yields_empty_result(self):
        _, state, engine = self.make([])
        rs = engine.refresh()
        assert rs.matches == ()
        assert state.error is None
