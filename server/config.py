
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    return (os.getenv(name, str(int(default))) or "").strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_str(name: str, default: str) -> str:
    v = os.getenv(name, default)
    return default if v is None else str(v)


def _env_ids(name: str) -> Optional[Tuple[str, ...]]:
    """
    Comma separated id list from env.

    Returns None when unset or "all", meaning the whole catalogue.
    """
    raw = (_env_str(name, "all") or "").strip().lower()
    if raw in ("", "all", "*"):
        return None
    return tuple(p.strip() for p in raw.split(",") if p.strip())


@dataclass(frozen=True)
class Settings:
    # Ports / run
    port: int = _env_int("PORT", 3001)
    log_level: str = _env_str("LOG_LEVEL", "INFO")

    # Debugging / behavior
    ws_debug: bool = _env_bool("WS_DEBUG", False)

    # Scope (None = full catalogue)
    target_leagues: Optional[Tuple[str, ...]] = _env_ids("TARGET_LEAGUES")
    target_markets: Optional[Tuple[str, ...]] = _env_ids("TARGET_MARKETS")
    max_fixtures: int = _env_int("MAX_FIXTURES", 50)
    min_bookmakers: int = _env_int("MIN_BOOKMAKERS", 4)

    # Scheduler
    refresh_interval: float = _env_float("REFRESH_INTERVAL_SECONDS", 60.0)
    snapshot_interval: float = _env_float("SNAPSHOT_INTERVAL_SECONDS", 300.0)
    first_snapshot_delay: float = _env_float("FIRST_SNAPSHOT_DELAY_SECONDS", 120.0)
    cleanup_probability: float = _env_float("CLEANUP_PROBABILITY", 0.05)

    # Snapshots
    snapshot_min_ev: float = _env_float("SNAPSHOT_MIN_EV", 3.0)
    snapshot_horizon_hours: float = _env_float("SNAPSHOT_HORIZON_HOURS", 48.0)
    snapshot_batch_size: int = _env_int("SNAPSHOT_BATCH_SIZE", 500)
    snapshot_retention_days: float = _env_float("SNAPSHOT_RETENTION_DAYS", 3.0)

    # Provider
    fixture_cache_ttl: float = _env_float("FIXTURE_CACHE_TTL_SECONDS", 300.0)
    rate_limit_max_requests: int = _env_int("RATE_LIMIT_MAX_REQUESTS", 10)
    rate_limit_window: float = _env_float("RATE_LIMIT_WINDOW_SECONDS", 60.0)
    provider_retries: int = _env_int("PROVIDER_RETRIES", 3)
    provider_backoff: float = _env_float("PROVIDER_BACKOFF_SECONDS", 1.0)
    provider_timeout: float = _env_float("PROVIDER_TIMEOUT_SECONDS", 30.0)

    # Change detection
    ev_change_threshold: float = _env_float("EV_CHANGE_THRESHOLD", 2.0)

    # Storage
    database_url: str = _env_str("DATABASE_URL", "sqlite:///ev_snapshots.db")
