
"""
lsportsOdds
===========

Client side of the LSports pre-match snapshot API: credentials, the
rate-limited/retrying HTTP client, the fixture cache and the catalogue of
target leagues and markets.

Public API (stable re-exports):
- ProviderClient, ProviderError, RateLimiter, ProviderHealth, response_body (from http)
- Fixture, FixtureCache, parse_fixture (from fixtures)
- MarketInfo, LeagueInfo, TARGET_MARKETS, LEAGUES, target_markets, target_leagues (from catalogue)
- get_scores (from scores)
- endpoint constants (from config)
"""
from .config import API_BASE, FIXTURES_ENDPOINT, MARKETS_ENDPOINT, SCORES_ENDPOINT
from .http import ProviderClient, ProviderError, ProviderHealth, RateLimiter, response_body
from .fixtures import Fixture, FixtureCache, parse_fixture
from .catalogue import (
    LEAGUES,
    TARGET_MARKETS,
    LeagueInfo,
    MarketInfo,
    get_leagues_verbose,
    get_markets_verbose,
    target_leagues,
    target_markets,
)
from .scores import get_scores

__all__ = [
    "API_BASE", "FIXTURES_ENDPOINT", "MARKETS_ENDPOINT", "SCORES_ENDPOINT",
    "ProviderClient", "ProviderError", "ProviderHealth", "RateLimiter", "response_body",
    "Fixture", "FixtureCache", "parse_fixture",
    "LEAGUES", "TARGET_MARKETS", "LeagueInfo", "MarketInfo",
    "get_leagues_verbose", "get_markets_verbose", "target_leagues", "target_markets",
    "get_scores",
]
