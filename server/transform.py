
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from calculations.models import Match, Notification, NotificationBatch, Quote, ResultSet, ResultStats, ValueBet
from lsportsOdds.catalogue import LEAGUES
from utils.timeutil import iso, utc_now


def quote_to_wire(q: Quote) -> Dict[str, Any]:
    return {"bookmaker": q.bookmaker, "odds": q.price, "ev": round(q.ev, 2), "isPositiveEV": q.is_positive}


def value_bet_to_wire(vb: ValueBet) -> Dict[str, Any]:
    return {
        "marketId": vb.market_id,
        "marketName": vb.market_name,
        "category": vb.category,
        "isPlayerProp": vb.is_player_prop,
        "playerName": vb.player_name,
        "selection": vb.selection,
        "line": vb.line,
        "fairOdds": round(vb.fair_odds, 3),
        "fairProb": round(vb.fair_prob * 100, 1),
        "bestBookmaker": vb.best_bookmaker,
        "bestOdds": vb.best_odds,
        "bestEV": round(vb.best_ev, 2),
        "allBookmakers": [quote_to_wire(q) for q in vb.quotes],
        "bookmakerCount": vb.bookmaker_count,
    }


def match_to_wire(m: Match) -> Dict[str, Any]:
    fx = m.fixture
    league = LEAGUES.get(fx.league_id) if fx.league_id is not None else None
    return {
        "fixtureId": m.fixture_id,
        "homeTeam": fx.home,
        "awayTeam": fx.away,
        "kickoff": iso(m.kickoff),
        "league": fx.league or (league.name if league else None),
        "leagueId": fx.league_id,
        "leagueEmoji": league.emoji if league else None,
        "country": league.country if league else None,
        "valueBets": [value_bet_to_wire(vb) for vb in m.value_bets],
        "totalEV": round(m.total_ev, 2),
        "bestEV": round(m.best_ev, 2),
        "betCount": m.bet_count,
    }


def stats_to_wire(s: ResultStats) -> Dict[str, Any]:
    return {
        "totalBets": s.total_bets,
        "positiveBets": s.positive_bets,
        "avgEV": round(s.avg_ev, 2),
        "refreshCount": s.refresh_count,
        "fixtureCount": s.fixture_count,
    }


def leagues_in_results(matches: Iterable[Match]) -> Dict[str, Dict[str, Any]]:
    """Per-league match counts, decorated from the league catalogue."""
    out: Dict[str, Dict[str, Any]] = {}
    for m in matches:
        lid = m.fixture.league_id
        key = str(lid)
        if key not in out:
            info = LEAGUES.get(lid) if lid is not None else None
            out[key] = {
                "id": lid,
                "name": m.fixture.league or (info.name if info else None),
                "emoji": info.emoji if info else None,
                "country": info.country if info else None,
                "matchCount": 0,
            }
        out[key]["matchCount"] += 1
    return out


def full_update(result: ResultSet) -> Dict[str, Any]:
    return {
        "matches": [match_to_wire(m) for m in result.matches],
        "bookmakers": list(result.bookmakers),
        "lastUpdated": iso(result.last_updated),
        "stats": stats_to_wire(result.stats),
    }


def notification_to_wire(n: Notification) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "type": n.kind,
        "fixtureId": n.fixture_id,
        "marketId": n.market_id,
        "marketName": n.market_name,
        "match": n.match,
        "kickoff": iso(n.kickoff),
        "selection": n.selection,
        "line": n.line,
        "playerName": n.player_name,
        "bookmaker": n.bookmaker,
        "ev": round(n.ev, 2),
        "odds": n.odds,
    }
    if n.previous_ev is not None:
        out["previousEV"] = round(n.previous_ev, 2)
        out["previousOdds"] = n.previous_odds
        out["change"] = round(n.change or 0.0, 2)
    return out


def notifications_to_wire(batch: NotificationBatch, timestamp: Optional[datetime] = None) -> Dict[str, Any]:
    return {
        "newPositiveEV": [notification_to_wire(n) for n in batch.new_positive_ev],
        "evIncreased": [notification_to_wire(n) for n in batch.ev_increased],
        "evDropped": [notification_to_wire(n) for n in batch.ev_dropped],
        "timestamp": iso(timestamp or utc_now()),
    }


def summary_to_wire(batch: NotificationBatch, timestamp: Optional[datetime] = None) -> Dict[str, Any]:
    return {**batch.counts(), "timestamp": iso(timestamp or utc_now())}


def matches_to_wire(matches: List[Match]) -> List[Dict[str, Any]]:
    return [match_to_wire(m) for m in matches]


def row_to_wire(row: Dict[str, Any]) -> Dict[str, Any]:
    """Store row with datetimes rendered as ISO-8601 strings."""
    return {k: iso(v) if isinstance(v, datetime) else v for k, v in row.items()}
