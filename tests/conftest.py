"""Shared fixtures and fakes for the test suite."""

import json
from datetime import datetime, timedelta, timezone

import pytest
import requests

from lsportsOdds.catalogue import MarketInfo
from lsportsOdds.fixtures import Fixture
from storage.store import Store


NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code
        self.content = b"" if payload is None else b"{}"

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeSession:
    """Replays queued responses (or raises queued exceptions) and records every POST."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


class FakeWebSocket:
    def __init__(self, fail=False):
        self.accepted = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))

    def events(self):
        return [m["event"] for m in self.sent]


class FakeClock:
    def __init__(self, start=1000.0):
        self.t = float(start)

    def __call__(self):
        return self.t

    def sleep(self, seconds):
        self.t += seconds

    def advance(self, seconds):
        self.t += seconds


class FakeProvider:
    """Stands in for ProviderClient: answers by endpoint from a dict of canned responses."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def fetch(self, endpoint, body=None):
        self.calls.append((endpoint, body))
        res = self.responses.get(endpoint, {})
        if isinstance(res, Exception):
            raise res
        return res


def fixture_record(fid, league_id=67, start=None, home="Home FC", away="Away FC", league="Premier League"):
    start = start or NOW + timedelta(hours=5)
    return {
        "FixtureId": fid,
        "Fixture": {
            "Participants": [{"Position": "1", "Name": home}, {"Position": "2", "Name": away}],
            "League": {"Id": league_id, "Name": league},
            "StartDate": start.strftime("%Y-%m-%dT%H:%M:%S"),
        },
    }


def market_record(market_id, quotes):
    """quotes: {bookmaker: [(name, price) or (name, price, line)]}"""
    pms = []
    for book, bets in quotes.items():
        out = []
        for b in bets:
            bet = {"Name": b[0], "Price": str(b[1])}
            if len(b) > 2:
                bet["Line"] = b[2]
            out.append(bet)
        pms.append({"Name": book, "Bets": out})
    return {"Id": market_id, "ProviderMarkets": pms}


def four_book_market(market_id=1, home_prices=(2.0, 2.1, 2.05, 1.95)):
    books = ("Bet365", "Unibet", "Pinnacle", "William Hill")
    return market_record(market_id, {b: [("1", p)] for b, p in zip(books, home_prices)})


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def match_winner():
    return MarketInfo("Match Winner", "Main")


@pytest.fixture
def fixture_obj():
    return Fixture(101, "Home FC", "Away FC", 67, "Premier League", NOW + timedelta(hours=5))


@pytest.fixture
def store():
    s = Store("sqlite://")
    s.create_schema()
    return s
