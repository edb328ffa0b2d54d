
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from storage.store import Store, odds_snapshots
from utils.timeutil import iso, utc_now

logger = logging.getLogger("calculations")

PAGE_SIZE = 1000
MAX_ROWS = 50_000
TOP_MOVERS = 100


def _direction(old: float, new: float) -> str:
    if new > old:
        return "up"
    if new < old:
        return "down"
    return "stable"


def summarize_movement(rows: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Change between the oldest and newest of `rows` (ordered by created_at); None under two rows."""
    if len(rows) < 2:
        return None
    oldest, newest = rows[0], rows[-1]
    return {
        "oddsChange": round(newest["best_odds"] - oldest["best_odds"], 3),
        "evChange": round(newest["ev"] - oldest["ev"], 2),
        "direction": _direction(oldest["ev"], newest["ev"]),
        "snapshotCount": len(rows),
        "firstSnapshot": iso(oldest["created_at"]),
        "lastSnapshot": iso(newest["created_at"]),
    }


def line_movement(
    store: Store,
    fixture_id: int,
    market_id: int,
    selection: str,
    *,
    now: Optional[datetime] = None,
    window: timedelta = timedelta(hours=24),
) -> Dict[str, Any]:
    since = (now or utc_now()) - window
    rows = store.select(
        "odds_snapshots",
        odds_snapshots.c.fixture_id == fixture_id,
        odds_snapshots.c.market_id == market_id,
        odds_snapshots.c.selection == selection,
        odds_snapshots.c.created_at >= since,
        order_by="created_at",
        columns=["best_odds", "ev", "created_at"],
    )
    return {
        "fixtureId": fixture_id,
        "marketId": market_id,
        "selection": selection,
        "snapshots": [
            {"best_odds": r["best_odds"], "ev": r["ev"], "created_at": iso(r["created_at"])}
            for r in rows
        ],
        "movement": summarize_movement(rows),
    }


def load_snapshots_since(store: Store, since: datetime, page_size: int = PAGE_SIZE, max_rows: int = MAX_ROWS) -> List[Dict[str, Any]]:
    """Page through snapshots created after `since`, oldest first, stopping at `max_rows`."""
    out: List[Dict[str, Any]] = []
    offset = 0
    while True:
        page = store.select(
            "odds_snapshots",
            odds_snapshots.c.created_at >= since,
            order_by="created_at",
            offset=offset,
            limit=page_size,
        )
        out.extend(page)
        offset += page_size
        if len(page) < page_size or len(out) >= max_rows:
            break
    return out


GroupKey = Tuple[int, int, str, Optional[float]]


def find_movers(rows: List[Dict[str, Any]], min_change: float = 0.5) -> Tuple[List[Dict[str, Any]], int]:
    """Group snapshot rows per bet and keep those whose EV moved at least `min_change`.

    Rows must be ordered by created_at. Returns (movers sorted by |evChange| desc, group count).
    """
    groups: Dict[GroupKey, List[Dict[str, Any]]] = {}
    for r in rows:
        key = (r["fixture_id"], r["market_id"], r["selection"], r.get("line"))
        groups.setdefault(key, []).append(r)

    movers: List[Dict[str, Any]] = []
    for snaps in groups.values():
        if len(snaps) < 2:
            continue
        oldest, newest = snaps[0], snaps[-1]
        if oldest["created_at"] == newest["created_at"]:
            continue
        ev_change = newest["ev"] - oldest["ev"]
        if abs(ev_change) < min_change:
            continue
        movers.append({
            "fixtureId": newest["fixture_id"],
            "homeTeam": newest.get("home_team"),
            "awayTeam": newest.get("away_team"),
            "league": newest.get("league"),
            "kickoff": iso(newest.get("kickoff")),
            "marketId": newest["market_id"],
            "marketName": newest.get("market_name"),
            "selection": newest["selection"],
            "line": newest.get("line"),
            "currentOdds": newest["best_odds"],
            "currentEV": newest["ev"],
            "previousOdds": oldest["best_odds"],
            "previousEV": oldest["ev"],
            "oddsChange": round(newest["best_odds"] - oldest["best_odds"], 3),
            "evChange": round(ev_change, 2),
            "direction": "up" if ev_change > 0 else "down",
            "bookmaker": newest.get("best_bookmaker"),
            "snapshotCount": len(snaps),
            "firstSeen": iso(oldest["created_at"]),
            "lastSeen": iso(newest["created_at"]),
            "history": [
                {"time": iso(s["created_at"]), "ev": s["ev"], "odds": s["best_odds"], "bookmaker": s.get("best_bookmaker")}
                for s in snaps
            ],
        })
    movers.sort(key=lambda m: -abs(m["evChange"]))
    return movers, len(groups)


def top_movers(
    store: Store,
    *,
    min_change: float = 0.5,
    hours: int = 24,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    rows = load_snapshots_since(store, (now or utc_now()) - timedelta(hours=hours))
    if not rows:
        return {"movers": [], "totalFound": 0, "message": "No snapshots found"}
    movers, unique = find_movers(rows, min_change)
    logger.debug("movers: %d of %d bets over %d snapshots", len(movers), unique, len(rows))
    return {
        "movers": movers[:TOP_MOVERS],
        "totalFound": len(movers),
        "totalSnapshots": len(rows),
        "uniqueBets": unique,
    }
