
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from storage.store import Store, StoreError, odds_snapshots
from utils.chunk import chunk_list
from utils.timeutil import utc_now

from .models import ResultSet

logger = logging.getLogger("calculations")

MIN_EV_FOR_SNAPSHOT = 3.0
HOURS_BEFORE_KICKOFF = 48
RETENTION = timedelta(days=3)
# Column precision of best_odds/fair_odds/ev
VALUE_CAP = 999.99


def _cap(v: float) -> float:
    return min(float(v), VALUE_CAP)


def snapshot_eligible_bets(
    result: ResultSet,
    now: datetime,
    min_ev: float = MIN_EV_FOR_SNAPSHOT,
    horizon: timedelta = timedelta(hours=HOURS_BEFORE_KICKOFF),
) -> List[Dict[str, Any]]:
    """Rows for every value bet kicking off within `horizon` whose best EV reaches `min_ev`."""
    cutoff = now + horizon
    rows: List[Dict[str, Any]] = []
    for m in result.matches:
        kickoff = m.kickoff
        if kickoff is None or not (now < kickoff <= cutoff):
            continue
        for vb in m.value_bets:
            if vb.best_ev < min_ev:
                continue
            rows.append({
                "fixture_id": m.fixture_id,
                "kickoff": kickoff,
                "home_team": m.fixture.home,
                "away_team": m.fixture.away,
                "league": m.fixture.league,
                "market_id": vb.market_id,
                "market_name": vb.market_name,
                "selection": vb.selection,
                "line": vb.line,
                "best_odds": _cap(vb.best_odds),
                "best_bookmaker": vb.best_bookmaker,
                "fair_odds": _cap(vb.fair_odds),
                "ev": _cap(vb.best_ev),
                "bookmaker_count": vb.bookmaker_count,
                "created_at": now,
            })
    return rows


class SnapshotWriter:
    """Appends snapshot rows in fixed-size batches and purges stale ones."""

    table = "odds_snapshots"

    def __init__(self, store: Store, batch_size: int = 500):
        self.store = store
        self.batch_size = batch_size
        self.last_saved: Optional[datetime] = None
        self.last_inserted = 0

    def save(self, records: List[Dict[str, Any]]) -> int:
        if not records:
            logger.info("no bets eligible for snapshot")
            return 0
        logger.info("saving %d snapshot rows", len(records))
        inserted = 0
        for batch in chunk_list(records, self.batch_size):
            try:
                inserted += self.store.insert_batch(self.table, batch)
            except StoreError as e:
                logger.error("snapshot batch of %d rows failed: %s", len(batch), e)
        self.last_saved = utc_now()
        self.last_inserted = inserted
        logger.info("saved %d/%d snapshot rows", inserted, len(records))
        return inserted

    def snapshot(
        self,
        result: ResultSet,
        now: Optional[datetime] = None,
        min_ev: float = MIN_EV_FOR_SNAPSHOT,
        horizon: timedelta = timedelta(hours=HOURS_BEFORE_KICKOFF),
    ) -> int:
        now = now or utc_now()
        return self.save(snapshot_eligible_bets(result, now, min_ev, horizon))

    def purge_older_than(self, retention: timedelta = RETENTION, now: Optional[datetime] = None) -> int:
        cutoff = (now or utc_now()) - retention
        removed = self.store.delete(self.table, odds_snapshots.c.kickoff < cutoff)
        logger.info("removed %d snapshots with kickoff before %s", removed, cutoff.isoformat())
        return removed
