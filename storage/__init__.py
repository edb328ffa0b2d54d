
"""
storage
=======

Persistent store for point-in-time odds snapshots and manually tracked bets.

Public API:
- Store, StoreError, metadata, odds_snapshots, tracked_bets (from store)
- TrackedBets, summarize_bets, settle_profit, RESULTS (from tracked)
"""
from .store import Store, StoreError, metadata, odds_snapshots, tracked_bets
from .tracked import RESULTS, TrackedBets, settle_profit, summarize_bets

__all__ = [
    "Store", "StoreError", "metadata", "odds_snapshots", "tracked_bets",
    "RESULTS", "TrackedBets", "settle_profit", "summarize_bets",
]
