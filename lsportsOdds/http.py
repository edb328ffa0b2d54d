
from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import requests
from requests.exceptions import RequestException

from .config import API_BASE, TRACE_ENABLED, credentials, logger


class ProviderError(Exception):
    """Raised when a provider call still fails after the retry budget is spent."""

    def __init__(self, endpoint: str, attempts: int, cause: Exception | None = None):
        self.endpoint = endpoint
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"{endpoint} failed after {attempts} attempt(s): {cause}")


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RateLimiter:
    """Sliding-window limiter: at most `max_requests` calls per `window` seconds.

    `acquire()` blocks until a slot is free; it never raises for an exceeded quota.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.max_requests = max(1, int(max_requests))
        self.window = float(window)
        self._clock = clock
        self._sleep = sleep
        self._stamps: deque[float] = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        while self._stamps and now - self._stamps[0] >= self.window:
            self._stamps.popleft()

    def wait_time(self) -> float:
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._stamps) < self.max_requests:
                return 0.0
            return max(0.0, self.window - (now - self._stamps[0]))

    def acquire(self) -> float:
        """Record one request, sleeping first if the window is full. Returns seconds waited."""
        waited = 0.0
        while True:
            with self._lock:
                now = self._clock()
                self._prune(now)
                if len(self._stamps) < self.max_requests:
                    self._stamps.append(now)
                    return waited
                delay = max(0.0, self.window - (now - self._stamps[0]))
            logger.info("rate limit reached, waiting %.1fs before next provider request", delay)
            self._sleep(delay)
            waited += delay

    def occupancy(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return len(self._stamps)


@dataclass
class ProviderHealth:
    connected: bool = False
    last_check: Optional[str] = None
    last_success: Optional[str] = None
    consecutive_failures: int = 0
    last_error: Optional[str] = None

    def as_dict(self) -> dict:
        return asdict(self)


class ProviderClient:
    """POST JSON to the odds provider with rate limiting, timeouts and exponential backoff."""

    def __init__(
        self,
        limiter: RateLimiter | None = None,
        *,
        base_url: str = API_BASE,
        retries: int = 3,
        backoff_base: float = 1.0,
        timeout: float = 30.0,
        creds: Dict[str, Any] | None = None,
        session: Any = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.limiter = limiter or RateLimiter()
        self.base_url = base_url.rstrip("/")
        self.retries = max(1, int(retries))
        self.backoff_base = float(backoff_base)
        self.timeout = timeout
        self.creds = dict(creds) if creds is not None else credentials()
        self.session = session or requests.Session()
        self._sleep = sleep
        self.health = ProviderHealth()
        self.total_calls = 0

    def _post(self, url: str, payload: dict) -> dict:
        r = self.session.post(url, json=payload, timeout=self.timeout)
        if TRACE_ENABLED:
            logger.debug("POST %s status=%s", url, getattr(r, "status_code", None))
        r.raise_for_status()
        if not r.content:
            return {}
        return r.json() or {}

    def fetch(self, endpoint: str, body: Dict[str, Any] | None = None) -> dict:
        """Call `endpoint` with credentials merged into `body`; raise ProviderError on final failure."""
        url = f"{self.base_url}{endpoint}"
        payload = {**self.creds, **(body or {})}
        last_exc: Exception | None = None
        for attempt in range(1, self.retries + 1):
            self.limiter.acquire()
            self.health.last_check = _utc_iso()
            self.total_calls += 1
            try:
                data = self._post(url, payload)
            except (RequestException, ValueError) as e:
                last_exc = e
                self.health.consecutive_failures += 1
                self.health.last_error = str(e)
                logger.warning("%s attempt %d/%d failed: %s", endpoint, attempt, self.retries, e)
                if attempt == self.retries:
                    break
                backoff = self.backoff_base * (2 ** (attempt - 1))
                logger.info("retrying %s in %.1fs", endpoint, backoff)
                self._sleep(backoff)
                continue
            self.health.connected = True
            self.health.last_success = _utc_iso()
            self.health.consecutive_failures = 0
            return data if isinstance(data, dict) else {"Body": data}
        self.health.connected = False
        raise ProviderError(endpoint, self.retries, last_exc)


def response_body(response: Dict[str, Any] | None) -> list:
    """Return the `Body` list of a provider response; missing or malformed bodies become []."""
    body = (response or {}).get("Body")
    if isinstance(body, dict):
        return [body]
    return body if isinstance(body, list) else []


def server_timestamp(response: Dict[str, Any] | None) -> Any:
    header = (response or {}).get("Header")
    return header.get("ServerTimestamp") if isinstance(header, dict) else None
