
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set

from calculations.models import Match, Notification, NotificationBatch, ResultSet


class ValidationError(ValueError):
    """Malformed request-surface input; rejected before any processing."""


def normalize_filter_values(value: Any) -> Set[str]:
    """
    Accept str (comma-separated), list/tuple/set, or scalar and normalize to a set of stripped strings.
    """
    if value is None:
        return set()
    if isinstance(value, str):
        cand = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        cand = [str(it) for it in value if it is not None]
    else:
        cand = [str(value)]
    return {c.strip() for c in cand if c.strip()}


def parse_float(name: str, raw: Optional[str], default: float) -> float:
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number, got {raw!r}") from None


def parse_int(name: str, raw: Any, default: Optional[int] = None) -> int:
    if raw is None or raw == "":
        if default is None:
            raise ValidationError(f"missing parameter: {name}")
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer, got {raw!r}") from None


def parse_int_list(name: str, raw: Any) -> List[int]:
    return [parse_int(name, v) for v in sorted(normalize_filter_values(raw), key=str)]


def parse_bool(name: str, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)) and raw in (0, 1):
        return bool(raw)
    if isinstance(raw, str):
        s = raw.strip().lower()
        if s in ("1", "true", "yes", "on"):
            return True
        if s in ("0", "false", "no", "off"):
            return False
    raise ValidationError(f"{name} must be a boolean, got {raw!r}")


# Preference keys accepted from subscribers (camelCase from the web client, snake_case otherwise).
_PREF_ALIASES = {
    "selectedBookmakers": "selected_bookmakers",
    "notifyNewEV": "notify_new_ev",
    "notifyEVIncrease": "notify_ev_increase",
    "notifyEVDrop": "notify_ev_drop",
    "minEVThreshold": "min_ev_threshold",
    "evChangeThreshold": "ev_change_threshold",
}


@dataclass(frozen=True)
class SubscriberPreferences:
    selected_bookmakers: FrozenSet[str] = field(default_factory=frozenset)
    notify_new_ev: bool = True
    notify_ev_increase: bool = True
    notify_ev_drop: bool = True
    min_ev_threshold: float = 0.0
    ev_change_threshold: float = 2.0

    def updated(self, message: Dict[str, Any]) -> "SubscriberPreferences":
        """Merge a set-preferences message; unknown keys are ignored, bad values rejected."""
        if not isinstance(message, dict):
            raise ValidationError("preferences must be an object")
        changes: Dict[str, Any] = {}
        for key, value in message.items():
            name = _PREF_ALIASES.get(key, key)
            if name == "selected_bookmakers":
                changes[name] = frozenset(normalize_filter_values(value))
            elif name in ("notify_new_ev", "notify_ev_increase", "notify_ev_drop"):
                changes[name] = parse_bool(key, value)
            elif name in ("min_ev_threshold", "ev_change_threshold"):
                try:
                    changes[name] = float(value)
                except (TypeError, ValueError):
                    raise ValidationError(f"{key} must be a number, got {value!r}") from None
        return replace(self, **changes)

    def allows_bookmaker(self, bookmaker: str) -> bool:
        return not self.selected_bookmakers or bookmaker in self.selected_bookmakers

    def as_dict(self) -> Dict[str, Any]:
        return {
            "selectedBookmakers": sorted(self.selected_bookmakers),
            "notifyNewEV": self.notify_new_ev,
            "notifyEVIncrease": self.notify_ev_increase,
            "notifyEVDrop": self.notify_ev_drop,
            "minEVThreshold": self.min_ev_threshold,
            "evChangeThreshold": self.ev_change_threshold,
        }


def notifications_for(batch: NotificationBatch, prefs: SubscriberPreferences) -> Optional[NotificationBatch]:
    """The part of `batch` this subscriber wants, or None when nothing survives."""
    def moved(n: Notification) -> bool:
        return prefs.allows_bookmaker(n.bookmaker) and abs(n.change or 0.0) >= prefs.ev_change_threshold

    out = NotificationBatch()
    if prefs.notify_new_ev:
        out.new_positive_ev = [
            n for n in batch.new_positive_ev
            if prefs.allows_bookmaker(n.bookmaker) and n.ev >= prefs.min_ev_threshold
        ]
    if prefs.notify_ev_increase:
        out.ev_increased = [n for n in batch.ev_increased if moved(n)]
    if prefs.notify_ev_drop:
        out.ev_dropped = [n for n in batch.ev_dropped if moved(n)]
    return out if out.total() else None


def filter_matches(
    result: ResultSet,
    *,
    min_ev: float = 0.0,
    max_odds: float = 10.0,
    categories: Iterable[str] = (),
    leagues: Iterable[int] = (),
) -> List[Match]:
    """Matches narrowed to the value bets passing every filter; empty matches are dropped."""
    cats = set(categories)
    league_ids = set(leagues)
    out: List[Match] = []
    for m in result.matches:
        if league_ids and m.fixture.league_id not in league_ids:
            continue
        bets = tuple(
            vb for vb in m.value_bets
            if (not cats or vb.category in cats)
            and vb.best_ev >= min_ev
            and vb.best_odds <= max_odds
        )
        if bets:
            out.append(replace(m, value_bets=bets))
    return out
