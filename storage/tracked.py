
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .store import Store, tracked_bets

logger = logging.getLogger("storage")

RESULTS = ("won", "lost", "void", "push", "pending")


def settle_profit(bet: Dict[str, Any], result: str) -> float:
    stake = float(bet.get("stake_amount") or 0.0)
    if result == "won":
        return stake * (float(bet.get("odds") or 0.0) - 1.0)
    if result == "lost":
        return -stake
    return 0.0


def summarize_bets(bets: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Win rate, ROI and unit totals over a list of tracked-bet rows."""
    settled = [b for b in bets if b.get("result") != "pending"]
    won = [b for b in bets if b.get("result") == "won"]
    lost = [b for b in bets if b.get("result") == "lost"]

    total_staked = sum(float(b.get("stake_amount") or 0) for b in settled)
    total_profit = sum(float(b.get("profit") or 0) for b in settled)
    units_staked = sum(float(b.get("stake_units") or 0) for b in settled)
    units_profit = (
        sum(float(b.get("stake_units") or 0) * (float(b.get("odds") or 0) - 1) for b in won)
        - sum(float(b.get("stake_units") or 0) for b in lost)
    )
    return {
        "total": len(bets),
        "pending": sum(1 for b in bets if b.get("result") == "pending"),
        "won": len(won),
        "lost": len(lost),
        "voided": sum(1 for b in bets if b.get("result") == "void"),
        "winRate": round(len(won) / len(settled) * 100, 1) if settled else 0,
        "totalStaked": round(total_staked, 2),
        "totalProfit": round(total_profit, 2),
        "roi": round(total_profit / total_staked * 100, 1) if total_staked > 0 else 0,
        "totalUnitsStaked": round(units_staked, 2),
        "totalUnitsProfit": round(units_profit, 2),
        "avgEV": round(sum(float(b.get("ev_at_placement") or 0) for b in bets) / len(bets), 1) if bets else 0,
    }


class TrackedBets:
    """Manually tracked wagers stored in `tracked_bets`."""

    table = "tracked_bets"

    def __init__(self, store: Store):
        self.store = store

    def add(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(fields)
        row.setdefault("result", "pending")
        row.setdefault("placed_at", datetime.now(timezone.utc))
        bet = self.store.insert_one(self.table, row)
        logger.info("tracked new bet: %s @ %s (%s)", bet.get("selection"), bet.get("odds"), bet.get("bookmaker"))
        return bet

    def list(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        criteria = [tracked_bets.c.result == status] if status and status != "all" else []
        return self.store.select(self.table, *criteria, order_by="placed_at", descending=True)

    def get(self, bet_id: int) -> Optional[Dict[str, Any]]:
        rows = self.store.select(self.table, tracked_bets.c.id == bet_id, limit=1)
        return rows[0] if rows else None

    def set_result(self, bet_id: int, result: str, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        if result not in RESULTS:
            raise ValueError(f"invalid result {result!r}; use one of {', '.join(RESULTS)}")
        bet = self.get(bet_id)
        if bet is None:
            return None
        profit = settle_profit(bet, result)
        settled_at = None if result == "pending" else (now or datetime.now(timezone.utc))
        self.store.update(
            self.table,
            {"result": result, "profit": profit, "settled_at": settled_at},
            tracked_bets.c.id == bet_id,
        )
        logger.info("updated bet %s: %s (profit %.2f)", bet_id, result, profit)
        return self.get(bet_id)

    def remove(self, bet_id: int) -> bool:
        deleted = self.store.delete(self.table, tracked_bets.c.id == bet_id)
        logger.info("deleted bet %s", bet_id)
        return deleted > 0
