
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from lsportsOdds.fixtures import Fixture

NEW_POSITIVE_EV = "new-positive-ev"
EV_INCREASED = "ev-increased"
EV_DROPPED = "ev-dropped"


@dataclass(frozen=True)
class Quote:
    bookmaker: str
    price: float
    ev: float = 0.0

    @property
    def is_positive(self) -> bool:
        return self.ev > 0


@dataclass(frozen=True)
class ValueBet:
    """One selection priced by enough bookmakers to derive a consensus.

    `quotes` are ordered by descending EV, so the first quote is the best one.
    """
    market_id: int
    market_name: str
    category: str
    selection: str
    fair_odds: float
    quotes: Tuple[Quote, ...]
    line: Optional[float] = None
    player_name: Optional[str] = None
    is_player_prop: bool = False

    @property
    def fair_prob(self) -> float:
        return 1.0 / self.fair_odds

    @property
    def best(self) -> Quote:
        return self.quotes[0]

    @property
    def best_ev(self) -> float:
        return self.best.ev

    @property
    def best_odds(self) -> float:
        return self.best.price

    @property
    def best_bookmaker(self) -> str:
        return self.best.bookmaker

    @property
    def bookmaker_count(self) -> int:
        return len(self.quotes)


@dataclass(frozen=True)
class Match:
    fixture: Fixture
    value_bets: Tuple[ValueBet, ...]

    @property
    def fixture_id(self) -> int:
        return self.fixture.fixture_id

    @property
    def kickoff(self) -> Optional[datetime]:
        return self.fixture.start

    @property
    def bet_count(self) -> int:
        return len(self.value_bets)

    @property
    def total_ev(self) -> float:
        return sum(vb.best_ev for vb in self.value_bets)

    @property
    def best_ev(self) -> float:
        return self.value_bets[0].best_ev if self.value_bets else 0.0

    @property
    def label(self) -> str:
        return f"{self.fixture.home} vs {self.fixture.away}"


@dataclass(frozen=True)
class ResultStats:
    total_bets: int = 0
    positive_bets: int = 0
    avg_ev: float = 0.0
    refresh_count: int = 0
    fixture_count: int = 0


@dataclass(frozen=True)
class ResultSet:
    matches: Tuple[Match, ...] = ()
    bookmakers: Tuple[str, ...] = ()
    last_updated: Optional[datetime] = None
    stats: ResultStats = field(default_factory=ResultStats)


# (fixture_id, market_id, selection, line, player_name, bookmaker)
NotificationKey = Tuple[int, int, str, Optional[float], Optional[str], str]


@dataclass(frozen=True)
class Notification:
    kind: str
    fixture_id: int
    market_id: int
    market_name: str
    selection: str
    bookmaker: str
    ev: float
    odds: float
    match: str = ""
    kickoff: Optional[datetime] = None
    line: Optional[float] = None
    player_name: Optional[str] = None
    previous_ev: Optional[float] = None
    previous_odds: Optional[float] = None
    change: Optional[float] = None

    @property
    def key(self) -> NotificationKey:
        return (self.fixture_id, self.market_id, self.selection, self.line, self.player_name, self.bookmaker)


@dataclass
class NotificationBatch:
    new_positive_ev: List[Notification] = field(default_factory=list)
    ev_increased: List[Notification] = field(default_factory=list)
    ev_dropped: List[Notification] = field(default_factory=list)

    def total(self) -> int:
        return len(self.new_positive_ev) + len(self.ev_increased) + len(self.ev_dropped)

    def counts(self) -> Dict[str, int]:
        return {
            "newPositiveEV": len(self.new_positive_ev),
            "evIncreased": len(self.ev_increased),
            "evDropped": len(self.ev_dropped),
        }
