"""Tests for the rate limiter and the retrying provider client."""

import pytest
import requests

from conftest import FakeClock, FakeResponse, FakeSession
from lsportsOdds.http import ProviderClient, ProviderError, RateLimiter, response_body, server_timestamp


CREDS = {"PackageId": 1, "UserName": "u", "Password": "p"}


@pytest.fixture
def limiter_clock():
    return FakeClock()


@pytest.fixture
def limiter(limiter_clock):
    return RateLimiter(10, 60.0, clock=limiter_clock, sleep=limiter_clock.sleep)


def make_client(session, limiter=None, sleeps=None):
    sleeps = [] if sleeps is None else sleeps
    return ProviderClient(
        limiter or RateLimiter(100, 60.0),
        base_url="https://provider.test",
        creds=CREDS,
        session=session,
        sleep=sleeps.append,
    )


class TestRateLimiter:
    """Sliding-window behaviour."""

    def test_under_quota_does_not_wait(self, limiter):
        for _ in range(10):
            assert limiter.acquire() == 0.0
        assert limiter.occupancy() == 10

    def test_eleventh_call_blocks_until_oldest_ages_out(self, limiter, limiter_clock):
        """At quota the next call sleeps instead of raising."""
        for _ in range(10):
            limiter.acquire()
        limiter_clock.advance(15)
        waited = limiter.acquire()
        assert waited == pytest.approx(45.0)
        assert limiter_clock() == pytest.approx(1060.0)
        assert limiter.occupancy() == 1

    def test_wait_time_reports_remaining_window(self, limiter, limiter_clock):
        for _ in range(10):
            limiter.acquire()
        limiter_clock.advance(20)
        assert limiter.wait_time() == pytest.approx(40.0)

    def test_window_slides(self, limiter, limiter_clock):
        for _ in range(5):
            limiter.acquire()
        limiter_clock.advance(61)
        assert limiter.occupancy() == 0


class TestProviderClient:
    """Retry, backoff and health tracking."""

    def test_success_merges_credentials(self):
        session = FakeSession(FakeResponse({"Header": {"ServerTimestamp": 5}, "Body": []}))
        client = make_client(session)
        res = client.fetch("/PreMatch/GetFixtureMarkets", {"Fixtures": [1]})
        assert server_timestamp(res) == 5
        call = session.calls[0]
        assert call["url"] == "https://provider.test/PreMatch/GetFixtureMarkets"
        assert call["json"] == {**CREDS, "Fixtures": [1]}
        assert call["timeout"] == 30.0
        assert client.health.connected is True
        assert client.health.consecutive_failures == 0

    def test_retries_with_exponential_backoff(self):
        session = FakeSession(
            requests.ConnectionError("down"),
            requests.Timeout("slow"),
            FakeResponse({"Body": [{"FixtureId": 1}]}),
        )
        sleeps = []
        client = make_client(session, sleeps=sleeps)
        res = client.fetch("/PreMatch/GetFixtures")
        assert response_body(res) == [{"FixtureId": 1}]
        assert sleeps == [1.0, 2.0]
        assert len(session.calls) == 3
        assert client.health.consecutive_failures == 0

    def test_final_failure_raises_provider_error(self):
        session = FakeSession(FakeResponse({"error": "x"}, status_code=500))
        sleeps = []
        limiter = RateLimiter(100, 60.0)
        client = make_client(session, limiter=limiter, sleeps=sleeps)
        with pytest.raises(ProviderError) as exc:
            client.fetch("/PreMatch/GetFixtures")
        assert exc.value.attempts == 3
        assert sleeps == [1.0, 2.0]
        assert client.health.connected is False
        assert client.health.consecutive_failures == 3
        assert "500" in client.health.last_error
        # every attempt goes through the limiter
        assert limiter.occupancy() == 3

    def test_undecodable_json_counts_as_failure(self):
        class BadJson(FakeResponse):
            def json(self):
                raise ValueError("not json")

        client = make_client(FakeSession(BadJson({})))
        with pytest.raises(ProviderError):
            client.fetch("/PreMatch/GetFixtures")


class TestResponseBody:
    def test_missing_body_is_empty(self):
        assert response_body({}) == []
        assert response_body(None) == []
        assert response_body({"Body": None}) == []

    def test_single_object_body_is_wrapped(self):
        assert response_body({"Body": {"FixtureId": 3}}) == [{"FixtureId": 3}]
