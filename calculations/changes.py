
from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Dict

from .models import (
    EV_DROPPED,
    EV_INCREASED,
    NEW_POSITIVE_EV,
    Notification,
    NotificationBatch,
    NotificationKey,
    ResultSet,
)

logger = logging.getLogger("calculations")


def flatten(result: ResultSet) -> Dict[NotificationKey, Notification]:
    """Map every (fixture, market, selection, line, player, bookmaker) in `result` to its current quote."""
    out: Dict[NotificationKey, Notification] = {}
    for m in result.matches:
        for vb in m.value_bets:
            for q in vb.quotes:
                n = Notification(
                    kind="",
                    fixture_id=m.fixture_id,
                    market_id=vb.market_id,
                    market_name=vb.market_name,
                    selection=vb.selection,
                    bookmaker=q.bookmaker,
                    ev=q.ev,
                    odds=q.price,
                    match=m.label,
                    kickoff=m.kickoff,
                    line=vb.line,
                    player_name=vb.player_name,
                )
                out[n.key] = n
    return out


class ChangeDetector:
    """Diffs each new ResultSet against the previous one and classifies EV movements.

    Only the previous cycle is remembered.
    """

    def __init__(self, increase_threshold: float = 2.0, drop_threshold: float = 2.0):
        self.increase_threshold = float(increase_threshold)
        self.drop_threshold = float(drop_threshold)
        self._previous: Dict[NotificationKey, Notification] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._previous)

    def diff(self, result: ResultSet) -> NotificationBatch:
        current = flatten(result)
        batch = NotificationBatch()
        with self._lock:
            previous = self._previous
            for key, cur in current.items():
                prev = previous.get(key)
                if prev is None:
                    if cur.ev > 0:
                        batch.new_positive_ev.append(replace(cur, kind=NEW_POSITIVE_EV))
                    continue
                change = cur.ev - prev.ev
                extra = dict(previous_ev=prev.ev, previous_odds=prev.odds, change=change)
                if change >= self.increase_threshold and cur.ev > 0:
                    batch.ev_increased.append(replace(cur, kind=EV_INCREASED, **extra))
                elif change <= -self.drop_threshold and prev.ev > 0:
                    batch.ev_dropped.append(replace(cur, kind=EV_DROPPED, **extra))
            self._previous = current
        if batch.total():
            logger.info(
                "EV changes: %d new +EV, %d increased, %d dropped",
                len(batch.new_positive_ev), len(batch.ev_increased), len(batch.ev_dropped),
            )
        return batch

    def reset(self) -> None:
        with self._lock:
            self._previous = {}
