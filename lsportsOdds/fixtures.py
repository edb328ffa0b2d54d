
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional

from utils.timeutil import to_datetime

from .config import FIXTURES_ENDPOINT, logger
from .http import ProviderClient, response_body, server_timestamp


@dataclass(frozen=True)
class Fixture:
    fixture_id: int
    home: Optional[str]
    away: Optional[str]
    league_id: Optional[int]
    league: Optional[str]
    start: Optional[datetime]


def _participant(parts: list, position: int) -> Optional[str]:
    for p in parts:
        if not isinstance(p, dict):
            continue
        if str(p.get("Position")) == str(position):
            return p.get("Name")
    return None


def parse_fixture(record: Any) -> Optional[Fixture]:
    """Build a Fixture from a provider record; None when it carries no numeric FixtureId."""
    if not isinstance(record, dict):
        return None
    try:
        fid = int(record.get("FixtureId"))
    except (TypeError, ValueError):
        return None
    fx = record.get("Fixture") if isinstance(record.get("Fixture"), dict) else record
    parts = fx.get("Participants") or []
    if isinstance(parts, dict):
        parts = [parts]
    league = fx.get("League") if isinstance(fx.get("League"), dict) else {}
    league_id = league.get("Id")
    try:
        league_id = int(league_id) if league_id is not None else None
    except (TypeError, ValueError):
        league_id = None
    return Fixture(
        fixture_id=fid,
        home=_participant(parts, 1),
        away=_participant(parts, 2),
        league_id=league_id,
        league=league.get("Name"),
        start=to_datetime(fx.get("StartDate")),
    )


class FixtureCache:
    """Time-bounded cache of the provider's fixture list."""

    def __init__(self, client: ProviderClient, ttl: float = 300.0, *, clock: Callable[[], float] = time.time):
        self.client = client
        self.ttl = float(ttl)
        self._clock = clock
        self._lock = threading.Lock()
        self._fixtures: List[Fixture] = []
        self._updated_at: Optional[float] = None
        self.server_timestamp: Any = None
        self.fetch_count = 0

    def age(self) -> Optional[float]:
        with self._lock:
            if self._updated_at is None:
                return None
            return self._clock() - self._updated_at

    def __len__(self) -> int:
        return len(self._fixtures)

    def get_fixtures(self) -> List[Fixture]:
        with self._lock:
            fixtures, updated_at = self._fixtures, self._updated_at
        if fixtures and updated_at is not None:
            age = self._clock() - updated_at
            if age < self.ttl:
                logger.debug("using cached fixtures (age %.0fs)", age)
                return fixtures

        logger.info("fetching fresh fixtures")
        res = self.client.fetch(FIXTURES_ENDPOINT, {})
        parsed = [f for f in (parse_fixture(r) for r in response_body(res)) if f is not None]
        with self._lock:
            self._fixtures = parsed
            self._updated_at = self._clock()
            self.server_timestamp = server_timestamp(res)
            self.fetch_count += 1
        logger.info("cached %d fixtures", len(parsed))
        return parsed

    def clear(self) -> None:
        with self._lock:
            self._fixtures = []
            self._updated_at = None
            self.server_timestamp = None

    def describe(self) -> dict:
        age = self.age()
        return {
            "fixtureCacheAge": f"{round(age)}s" if age is not None else None,
            "fixtureCacheTTL": f"{round(self.ttl)}s",
            "cachedFixtureCount": len(self._fixtures),
            "serverTimestamp": self.server_timestamp,
            "fixtureFetches": self.fetch_count,
        }
