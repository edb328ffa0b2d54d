
from __future__ import annotations

import math
from typing import Any, Iterator, Optional, Tuple

from lsportsOdds.catalogue import MarketInfo

from .normalize import clean_name, normalize_bookmaker, parse_line


def parse_decimal_odds(bet: dict) -> Optional[float]:
    """Decimal price of a provider bet; None unless it parses, is finite and is strictly above 1.0."""
    v = bet.get("Price") if isinstance(bet, dict) else None
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) and f > 1.0 else None


def selection_identity(bet: dict, market: MarketInfo) -> Tuple[str, Optional[float], Optional[str]]:
    """Return (selection name, line, player) for a bet of `market`."""
    name = clean_name(bet.get("Name")) or ""
    player = clean_name(bet.get("PlayerName"))
    if market.player_in_name and player:
        name = f"{player} {name}".strip()
    if player is None and market.is_player_prop:
        # goalscorer-style markets put the player in the bet name itself
        player = name or None
    return name, parse_line(bet.get("Line")), player


def iter_quotes(market_record: dict, market: MarketInfo) -> Iterator[Tuple[Tuple[str, Optional[float], Optional[str]], str, float]]:
    """Yield ((name, line, player), bookmaker, price) for every valid quote of a market record."""
    for pm in market_record.get("ProviderMarkets") or []:
        if not isinstance(pm, dict):
            continue
        bookmaker = normalize_bookmaker(pm.get("Name"))
        if not bookmaker:
            continue
        for bet in pm.get("Bets") or []:
            if not isinstance(bet, dict):
                continue
            price = parse_decimal_odds(bet)
            if price is None:
                continue
            yield selection_identity(bet, market), bookmaker, price


def bookmakers_of(market_record: dict) -> Iterator[str]:
    for pm in market_record.get("ProviderMarkets") or []:
        if isinstance(pm, dict):
            b = normalize_bookmaker(pm.get("Name"))
            if b:
                yield b


def market_id_of(market_record: Any) -> Optional[int]:
    if not isinstance(market_record, dict):
        return None
    try:
        return int(market_record.get("Id"))
    except (TypeError, ValueError):
        return None
