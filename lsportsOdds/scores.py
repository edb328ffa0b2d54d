
from __future__ import annotations

from typing import Any, Dict, List, Optional

from .config import SCORES_ENDPOINT
from .fixtures import parse_fixture
from .http import ProviderClient, response_body

FINISHED_STATUS = 3


def _score_of(record: Dict[str, Any]) -> Dict[str, Any]:
    fx = record.get("Fixture") if isinstance(record.get("Fixture"), dict) else record
    livescore = record.get("Livescore") or {}
    scoreboard = livescore.get("Scoreboard") or {}
    parsed = parse_fixture(record)
    return {
        "fixtureId": record.get("FixtureId"),
        "status": fx.get("Status"),
        "startDate": fx.get("StartDate"),
        "league": parsed.league if parsed else None,
        "home": parsed.home if parsed else None,
        "away": parsed.away if parsed else None,
        "score": {
            "home": scoreboard.get("HomeScore"),
            "away": scoreboard.get("AwayScore"),
            "status": scoreboard.get("Status"),
            "currentPeriod": scoreboard.get("CurrentPeriod"),
        },
        "periods": [
            {"type": p.get("Type"), "homeScore": p.get("HomeScore"), "awayScore": p.get("AwayScore")}
            for p in (livescore.get("Periods") or [])
            if isinstance(p, dict)
        ],
    }


def get_scores(
    client: ProviderClient,
    fixture_ids: Optional[List[int]] = None,
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Fetch settled (or live-scored) fixtures for bet settlement."""
    body: Dict[str, Any] = {}
    if fixture_ids:
        body["Fixtures"] = list(fixture_ids)
    if from_date:
        body["FromDate"] = from_date
    if to_date:
        body["ToDate"] = to_date
    out = []
    for rec in response_body(client.fetch(SCORES_ENDPOINT, body)):
        if not isinstance(rec, dict):
            continue
        fx = rec.get("Fixture") if isinstance(rec.get("Fixture"), dict) else rec
        if fx.get("Status") == FINISHED_STATUS or rec.get("Livescore"):
            out.append(_score_of(rec))
    return out
