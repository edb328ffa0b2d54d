
from __future__ import annotations

import os
import logging
from dotenv import load_dotenv

# Load provider credentials from .env (if present)
load_dotenv()


def _env_int_or_none(name: str):
    try:
        return int(os.getenv(name, ""))
    except ValueError:
        return None


PACKAGE_ID = _env_int_or_none("LSPORTS_PACKAGE_ID")
USERNAME = os.getenv("LSPORTS_USERNAME")
PASSWORD = os.getenv("LSPORTS_PASSWORD")

# LSports snapshot API endpoints
API_BASE = os.getenv("LSPORTS_API_BASE", "https://stm-snapshot.lsports.eu").rstrip("/")
FIXTURES_ENDPOINT = "/PreMatch/GetFixtures"
MARKETS_ENDPOINT = "/PreMatch/GetFixtureMarkets"
SCORES_ENDPOINT = "/PreMatch/GetScores"

# Tracing / logging setup
TRACE_ENABLED = os.getenv("TRACE", "0").strip().lower() in ("1", "true", "yes", "on")
if TRACE_ENABLED:
    logging.basicConfig(
        filename=os.getenv("TRACE_FILE", "trace.log"),
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)s %(message)s",
    )
logger = logging.getLogger("lsports")


def credentials() -> dict:
    """Credential fields merged into every provider request body."""
    return {"PackageId": PACKAGE_ID, "UserName": USERNAME, "Password": PASSWORD}


def credentials_present() -> bool:
    return bool(PACKAGE_ID and USERNAME and PASSWORD)


if not credentials_present():
    logger.error(
        "Missing LSports credentials; set LSPORTS_PACKAGE_ID, LSPORTS_USERNAME and LSPORTS_PASSWORD"
    )
