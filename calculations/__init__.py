"""
calculations
============

Consensus pricing and EV over the provider's market data, plus everything
derived from successive result sets.

Public API (stable):
- compute_ev_pct, median, compute_result_set, RefreshEngine, EmptyResultError (from evcalc)
- ChangeDetector (from changes)
- CacheState (from state)
- snapshot_eligible_bets, SnapshotWriter (from snapshot)
- line_movement, top_movers, find_movers (from movement)
- model dataclasses (from models)
"""
from .changes import ChangeDetector
from .evcalc import EmptyResultError, RefreshEngine, compute_ev_pct, compute_result_set, median
from .models import Match, Notification, NotificationBatch, Quote, ResultSet, ResultStats, ValueBet
from .movement import find_movers, line_movement, top_movers
from .snapshot import SnapshotWriter, snapshot_eligible_bets
from .state import CacheState

__all__ = [
    "ChangeDetector",
    "EmptyResultError",
    "RefreshEngine",
    "compute_ev_pct",
    "compute_result_set",
    "median",
    "Match",
    "Notification",
    "NotificationBatch",
    "Quote",
    "ResultSet",
    "ResultStats",
    "ValueBet",
    "find_movers",
    "line_movement",
    "top_movers",
    "SnapshotWriter",
    "snapshot_eligible_bets",
    "CacheState",
]
