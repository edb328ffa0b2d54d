
from __future__ import annotations

import re
from typing import Optional


# prefix/substring -> canonical brand; regional sites (unibet.fr, bet365.es, ...) collapse to one name
BOOKMAKER_PREFIXES = (
    ("unibet", "Unibet"),
    ("bet365", "Bet365"),
    ("betway", "BetWay"),
)
BOOKMAKER_CONTAINS = (
    ("1xbet", "1XBet"),
)


def normalize_bookmaker(name: Optional[str]) -> Optional[str]:
    """Return the canonical brand for a bookmaker name (regional variants collapse)."""
    if not name:
        return name
    s = str(name).strip()
    low = s.lower()
    for prefix, canon in BOOKMAKER_PREFIXES:
        if low.startswith(prefix):
            return canon
    for token, canon in BOOKMAKER_CONTAINS:
        if token in low:
            return canon
    return s


_LINE_RE = re.compile(r"^\s*([+\-]?\d+(?:\.\d+)?)")


def parse_line(v) -> Optional[float]:
    """Leading numeric part of a provider line ("2.5", "-0.25 (0-0)"); None when absent."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return float(v)
    m = _LINE_RE.match(str(v))
    return float(m.group(1)) if m else None


def clean_name(v) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    if s == "" or s.lower() in ("none", "null", "n/a", "na"):
        return None
    return s
