
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List


@dataclass(frozen=True)
class MarketInfo:
    name: str
    category: str
    is_player_prop: bool = False
    # selection label is prefixed with the player's name (e.g. "Salah Over")
    player_in_name: bool = False


@dataclass(frozen=True)
class LeagueInfo:
    name: str
    country: str
    emoji: str
    tier: int


TARGET_MARKETS: Dict[int, MarketInfo] = {
    1: MarketInfo("Match Winner", "Main"),
    # Goal kicks
    1927: MarketInfo("U/O Goal Kicks", "Goal Kicks"),
    1928: MarketInfo("U/O Goal Kicks - Home", "Goal Kicks"),
    1929: MarketInfo("U/O Goal Kicks - Away", "Goal Kicks"),
    # Throw-ins
    180: MarketInfo("U/O Throw-Ins", "Throw-ins"),
    1222: MarketInfo("U/O Throw-Ins - Home", "Throw-ins"),
    1223: MarketInfo("U/O Throw-Ins - Away", "Throw-ins"),
    1224: MarketInfo("1X2 Throw-Ins", "Throw-ins"),
    # Tackles
    1904: MarketInfo("U/O Tackles - Home", "Tackles"),
    1905: MarketInfo("U/O Tackles - Away", "Tackles"),
    # Shots
    132: MarketInfo("U/O Shots on Target", "Shots"),
    1229: MarketInfo("U/O Shots on Target - Home", "Shots"),
    1230: MarketInfo("U/O Shots on Target - Away", "Shots"),
    1234: MarketInfo("1X2 Shots on Target", "Shots"),
    2351: MarketInfo("Player Shots On Target", "Player Shots", is_player_prop=True, player_in_name=True),
    # Cards
    158: MarketInfo("U/O Yellow Cards", "Cards"),
    214: MarketInfo("U/O Cards", "Cards"),
    181: MarketInfo("U/O Yellow Cards - Home", "Cards"),
    184: MarketInfo("U/O Yellow Cards - Away", "Cards"),
    19: MarketInfo("First Card", "Cards"),
    407: MarketInfo("Asian Handicap Cards", "Cards"),
    824: MarketInfo("Player To Be Booked", "Player Cards", is_player_prop=True),
    825: MarketInfo("Player To Be Sent Off", "Player Cards", is_player_prop=True),
    # Goalscorers
    711: MarketInfo("Anytime Goalscorer", "Player Goals", is_player_prop=True),
    712: MarketInfo("First Goalscorer", "Player Goals", is_player_prop=True),
    713: MarketInfo("Last Goalscorer", "Player Goals", is_player_prop=True),
    714: MarketInfo("Player 2+ Goals", "Player Goals", is_player_prop=True),
    715: MarketInfo("Player 3+ Goals (Hat-trick)", "Player Goals", is_player_prop=True),
    1065: MarketInfo("Home First Goalscorer", "Player Goals", is_player_prop=True),
    1066: MarketInfo("Home Last Goalscorer", "Player Goals", is_player_prop=True),
    1067: MarketInfo("Away First Goalscorer", "Player Goals", is_player_prop=True),
    1068: MarketInfo("Away Last Goalscorer", "Player Goals", is_player_prop=True),
    # Asian
    3: MarketInfo("Asian Handicap", "Asian"),
    64: MarketInfo("Asian Handicap 1st Period", "Asian"),
    65: MarketInfo("Asian Handicap 2nd Period", "Asian"),
    835: MarketInfo("Asian U/O", "Asian"),
    836: MarketInfo("Asian U/O 1st Period", "Asian"),
    # Corners
    11: MarketInfo("Total Corners", "Corners"),
    30: MarketInfo("U/O Corners - Home", "Corners"),
    31: MarketInfo("U/O Corners - Away", "Corners"),
    95: MarketInfo("Corners Handicap", "Corners"),
    409: MarketInfo("1X2 Corners", "Corners"),
    129: MarketInfo("U/O Corners 1st Half", "Corners"),
    1552: MarketInfo("Asian U/O Corners", "Corners"),
    # Goals
    2: MarketInfo("U/O Goals", "Goals"),
    5: MarketInfo("U/O Goals 1st Half", "Goals"),
    77: MarketInfo("BTTS", "Goals"),
}


LEAGUES: Dict[int, LeagueInfo] = {
    67: LeagueInfo("Premier League", "England", "🏴", 1),
    58: LeagueInfo("Championship", "England", "🏴", 2),
    68: LeagueInfo("League One", "England", "🏴", 3),
    70: LeagueInfo("League Two", "England", "🏴", 4),
    8363: LeagueInfo("LaLiga", "Spain", "🇪🇸", 1),
    22263: LeagueInfo("LaLiga2", "Spain", "🇪🇸", 2),
    65: LeagueInfo("Bundesliga", "Germany", "🇩🇪", 1),
    66: LeagueInfo("2.Bundesliga", "Germany", "🇩🇪", 2),
    4: LeagueInfo("Serie A", "Italy", "🇮🇹", 1),
    8: LeagueInfo("Serie B", "Italy", "🇮🇹", 2),
    61: LeagueInfo("Ligue 1", "France", "🇫🇷", 1),
    60: LeagueInfo("Ligue 2", "France", "🇫🇷", 2),
    2944: LeagueInfo("Eredivisie", "Netherlands", "🇳🇱", 1),
    6603: LeagueInfo("Primeira Liga", "Portugal", "🇵🇹", 1),
    63: LeagueInfo("Super Lig", "Turkey", "🇹🇷", 1),
    30058: LeagueInfo("Premiership", "Scotland", "🏴", 1),
    59: LeagueInfo("Jupiler League", "Belgium", "🇧🇪", 1),
    32521: LeagueInfo("Ekstraklasa", "Poland", "🇵🇱", 1),
    32644: LeagueInfo("Champions League", "Europe", "🏆", 1),
    30444: LeagueInfo("Europa League", "Europe", "🌟", 2),
    45863: LeagueInfo("Conference League", "Europe", "🏅", 3),
}


def resolve_ids(raw: Iterable | None, table: Dict[int, object]) -> List[int]:
    """Parse configured ids, keeping only those present in `table`. Empty/None means all of `table`."""
    ids: List[int] = []
    for v in raw or []:
        try:
            i = int(str(v).strip())
        except ValueError:
            continue
        if i in table and i not in ids:
            ids.append(i)
    return ids or list(table.keys())


def target_markets(raw: Iterable | None = None) -> Dict[int, MarketInfo]:
    return {i: TARGET_MARKETS[i] for i in resolve_ids(raw, TARGET_MARKETS)}


def target_leagues(raw: Iterable | None = None) -> List[int]:
    return resolve_ids(raw, LEAGUES)


def get_leagues_verbose() -> list[dict]:
    return [
        {"id": lid, "name": l.name, "country": l.country, "emoji": l.emoji, "tier": l.tier}
        for lid, l in LEAGUES.items()
    ]


def get_markets_verbose() -> list[dict]:
    return [
        {"id": mid, "name": m.name, "category": m.category, "isPlayerProp": m.is_player_prop}
        for mid, m in TARGET_MARKETS.items()
    ]
