
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from lsportsOdds.catalogue import MarketInfo
from lsportsOdds.config import MARKETS_ENDPOINT
from lsportsOdds.fixtures import Fixture, FixtureCache
from lsportsOdds.http import ProviderClient, response_body, server_timestamp
from utils.timeutil import iso, utc_now

from .extract import bookmakers_of, iter_quotes, market_id_of
from .models import Match, Quote, ResultSet, ResultStats, ValueBet
from .state import CacheState

logger = logging.getLogger("calculations")

MIN_BOOKMAKERS = 4
MAX_FIXTURES = 50


class EmptyResultError(Exception):
    """The provider answered but returned no usable market data."""


def median(values: Sequence[float]) -> Optional[float]:
    """Middle element of the sorted values; mean of the two middle elements for even lengths."""
    if not values:
        return None
    s = sorted(values)
    mid = len(s) // 2
    if len(s) % 2:
        return s[mid]
    return (s[mid - 1] + s[mid]) / 2.0


def compute_ev_pct(fair_prob: float, offered_odds: float) -> float:
    """Return EV% given a fair probability and offered decimal odds."""
    return (fair_prob * offered_odds - 1.0) * 100.0


def select_fixtures(
    fixtures: Iterable[Fixture],
    target_leagues: Iterable[int],
    now: datetime,
    max_fixtures: int = MAX_FIXTURES,
) -> List[Fixture]:
    """Upcoming fixtures of the target leagues, soonest first, capped at `max_fixtures`."""
    leagues = set(target_leagues)
    upcoming = [
        f for f in fixtures
        if f.league_id in leagues and f.start is not None and f.start > now
    ]
    upcoming.sort(key=lambda f: (f.start, f.fixture_id))
    return upcoming[:max_fixtures]


def build_value_bets(
    market_record: dict,
    market_id: int,
    market: MarketInfo,
    min_bookmakers: int = MIN_BOOKMAKERS,
) -> List[ValueBet]:
    """Group a market's quotes into selections and price each one against its median.

    Selections quoted by fewer than `min_bookmakers` distinct bookmakers are dropped.
    A bookmaker quoting the same selection twice (regional sites) keeps its best price.
    """
    groups: Dict[Tuple[str, Optional[float], Optional[str]], Dict[str, float]] = {}
    for ident, bookmaker, price in iter_quotes(market_record, market):
        books = groups.setdefault(ident, {})
        if price > books.get(bookmaker, 0.0):
            books[bookmaker] = price

    out: List[ValueBet] = []
    for (name, line, player), books in groups.items():
        if len(books) < min_bookmakers:
            continue
        fair_odds = median(list(books.values()))
        fair_prob = 1.0 / fair_odds
        quotes = [Quote(b, p, compute_ev_pct(fair_prob, p)) for b, p in books.items()]
        quotes.sort(key=lambda q: (-q.ev, q.bookmaker))
        out.append(
            ValueBet(
                market_id=market_id,
                market_name=market.name,
                category=market.category,
                selection=name,
                fair_odds=fair_odds,
                quotes=tuple(quotes),
                line=line,
                player_name=player,
                is_player_prop=market.is_player_prop,
            )
        )
    return out


def summarize(matches: Sequence[Match], refresh_count: int) -> ResultStats:
    bets = [vb for m in matches for vb in m.value_bets]
    positive = [vb.best_ev for vb in bets if vb.best_ev > 0]
    return ResultStats(
        total_bets=len(bets),
        positive_bets=len(positive),
        avg_ev=(sum(positive) / len(positive)) if positive else 0.0,
        refresh_count=refresh_count,
        fixture_count=len(matches),
    )


def compute_result_set(
    fixtures: Iterable[Fixture],
    target_leagues: Iterable[int],
    target_markets: Dict[int, MarketInfo],
    now: datetime,
    fetch_markets: Callable[[List[int], List[int]], list],
    *,
    refresh_count: int = 1,
    max_fixtures: int = MAX_FIXTURES,
    min_bookmakers: int = MIN_BOOKMAKERS,
) -> ResultSet:
    """Build a complete ResultSet from the fixture list and one market-data request.

    `fetch_markets(fixture_ids, market_ids)` returns the provider's market records and
    is not called at all when no fixture survives the league/kickoff filter.
    """
    empty = ResultSet(last_updated=now, stats=ResultStats(refresh_count=refresh_count))
    selected = select_fixtures(fixtures, target_leagues, now, max_fixtures)
    logger.info("found %d upcoming fixtures", len(selected))
    if not selected:
        return empty

    try:
        events = fetch_markets([f.fixture_id for f in selected], list(target_markets.keys()))
    except EmptyResultError as e:
        logger.info("no market data returned: %s", e)
        return empty

    by_id = {f.fixture_id: f for f in selected}
    bets_by_fixture: Dict[int, List[ValueBet]] = {}
    bookmakers: set[str] = set()
    for event in events:
        if not isinstance(event, dict):
            continue
        try:
            fid = int(event.get("FixtureId"))
        except (TypeError, ValueError):
            continue
        if fid not in by_id:
            continue
        for market_record in event.get("Markets") or []:
            mid = market_id_of(market_record)
            info = target_markets.get(mid) if mid is not None else None
            if info is None:
                continue
            bookmakers.update(bookmakers_of(market_record))
            bets_by_fixture.setdefault(fid, []).extend(
                build_value_bets(market_record, mid, info, min_bookmakers)
            )

    matches: List[Match] = []
    for fixture in selected:
        bets = bets_by_fixture.get(fixture.fixture_id)
        if not bets:
            continue
        bets.sort(key=lambda vb: -vb.best_ev)
        matches.append(Match(fixture=fixture, value_bets=tuple(bets)))
    matches.sort(key=lambda m: -m.best_ev)

    return ResultSet(
        matches=tuple(matches),
        bookmakers=tuple(sorted(bookmakers)),
        last_updated=now,
        stats=summarize(matches, refresh_count),
    )


class RefreshEngine:
    """Runs one refresh cycle: fixtures (cached) -> market data -> EV -> state swap."""

    def __init__(
        self,
        client: ProviderClient,
        fixture_cache: FixtureCache,
        state: CacheState,
        *,
        target_leagues: List[int],
        target_markets: Dict[int, MarketInfo],
        max_fixtures: int = MAX_FIXTURES,
        min_bookmakers: int = MIN_BOOKMAKERS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.fixture_cache = fixture_cache
        self.state = state
        self.target_leagues = list(target_leagues)
        self.target_markets = dict(target_markets)
        self.max_fixtures = max_fixtures
        self.min_bookmakers = min_bookmakers
        self._clock = clock
        self.metadata: Dict[str, object] = {
            "lastMarketsResponse": None,
            "lastServerTimestamp": None,
            "avgResponseTime": 0.0,
        }

    def fetch_markets(self, fixture_ids: List[int], market_ids: List[int]) -> list:
        started = time.monotonic()
        res = self.client.fetch(MARKETS_ENDPOINT, {"Fixtures": fixture_ids, "Markets": market_ids})
        elapsed_ms = (time.monotonic() - started) * 1000.0
        body = response_body(res)
        prev_avg = float(self.metadata.get("avgResponseTime") or 0.0)
        self.metadata.update(
            lastMarketsResponse={
                "timestamp": iso(utc_now()),
                "eventCount": len(body),
                "fixtureCount": len(fixture_ids),
                "responseTimeMs": round(elapsed_ms),
                "serverTimestamp": server_timestamp(res),
            },
            lastServerTimestamp=server_timestamp(res),
            avgResponseTime=(prev_avg + elapsed_ms) / 2 if prev_avg else elapsed_ms,
        )
        logger.info("received markets for %d events (%dms)", len(body), elapsed_ms)
        if not body:
            raise EmptyResultError(f"empty Body for {len(fixture_ids)} fixtures")
        return body

    def refresh(self, now: Optional[datetime] = None, leagues: Optional[List[int]] = None) -> ResultSet:
        now = now or self._clock()
        self.state.begin()
        started = time.monotonic()
        fixtures = self.fixture_cache.get_fixtures()
        result = compute_result_set(
            fixtures,
            leagues or self.target_leagues,
            self.target_markets,
            now,
            self.fetch_markets,
            refresh_count=self.state.current.stats.refresh_count + 1,
            max_fixtures=self.max_fixtures,
            min_bookmakers=self.min_bookmakers,
        )
        self.state.replace(result)
        logger.info(
            "EV calculation complete in %.1fs: %d matches, %d bets, %d positive EV",
            time.monotonic() - started,
            len(result.matches),
            result.stats.total_bets,
            result.stats.positive_bets,
        )
        return result
