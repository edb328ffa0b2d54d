
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
import uvicorn

from calculations.changes import ChangeDetector
from calculations.evcalc import RefreshEngine
from calculations.movement import line_movement, top_movers
from calculations.snapshot import SnapshotWriter
from calculations.state import CacheState
from lsportsOdds.catalogue import get_leagues_verbose, get_markets_verbose, target_leagues, target_markets
from lsportsOdds.fixtures import FixtureCache
from lsportsOdds.http import ProviderClient, ProviderError, RateLimiter
from lsportsOdds.scores import get_scores
from server.config import Settings
from server.filters import ValidationError, filter_matches, normalize_filter_values, parse_float, parse_int, parse_int_list
from server.hub import Hub
from server.scheduler import Scheduler
from server.transform import leagues_in_results, matches_to_wire, row_to_wire, stats_to_wire
from storage.store import Store, StoreError
from storage.tracked import RESULTS, TrackedBets, summarize_bets
from utils.timeutil import iso, to_datetime, utc_now

logger = logging.getLogger("server")

STALE_AFTER_MINUTES = 10


class BetIn(BaseModel):
    fixtureId: Optional[int] = None
    homeTeam: Optional[str] = None
    awayTeam: Optional[str] = None
    league: Optional[str] = None
    kickoff: Any = None
    marketId: Optional[int] = None
    marketName: Optional[str] = None
    selection: Optional[str] = None
    line: Optional[float] = None
    odds: Optional[float] = None
    fairOdds: Optional[float] = None
    ev: Optional[float] = None
    stakeUnits: Optional[float] = None
    stakeAmount: Optional[float] = None
    bookmaker: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        if not (self.fixtureId and self.marketId and self.selection and self.odds):
            raise ValidationError("Missing required fields")
        return {
            "fixture_id": self.fixtureId,
            "home_team": self.homeTeam,
            "away_team": self.awayTeam,
            "league": self.league,
            "kickoff": to_kickoff(self.kickoff),
            "market_id": self.marketId,
            "market_name": self.marketName,
            "selection": self.selection,
            "line": self.line,
            "odds": self.odds,
            "fair_odds": self.fairOdds,
            "ev_at_placement": self.ev,
            "stake_units": self.stakeUnits,
            "stake_amount": self.stakeAmount,
            "bookmaker": self.bookmaker,
        }


class ResultIn(BaseModel):
    result: Optional[str] = None


class RefreshIn(BaseModel):
    leagues: Optional[List[int]] = None


def to_kickoff(raw: Any):
    if raw in (None, ""):
        return None
    dt = to_datetime(raw)
    if dt is None:
        raise ValidationError(f"kickoff is not a timestamp: {raw!r}")
    return dt


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    client: Optional[ProviderClient] = None,
    store: Optional[Store] = None,
    start_scheduler: bool = True,
) -> FastAPI:
    settings = settings or Settings()

    limiter = RateLimiter(settings.rate_limit_max_requests, settings.rate_limit_window)
    client = client or ProviderClient(
        limiter,
        retries=settings.provider_retries,
        backoff_base=settings.provider_backoff,
        timeout=settings.provider_timeout,
    )
    store = store or Store(settings.database_url)
    fixture_cache = FixtureCache(client, settings.fixture_cache_ttl)
    state = CacheState()
    engine = RefreshEngine(
        client,
        fixture_cache,
        state,
        target_leagues=target_leagues(settings.target_leagues),
        target_markets=target_markets(settings.target_markets),
        max_fixtures=settings.max_fixtures,
        min_bookmakers=settings.min_bookmakers,
    )
    detector = ChangeDetector(settings.ev_change_threshold, settings.ev_change_threshold)
    hub = Hub(settings)
    writer = SnapshotWriter(store, settings.snapshot_batch_size)
    bets = TrackedBets(store)
    scheduler = Scheduler(engine, detector, hub, writer, settings)
    started = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            store.create_schema()
        except StoreError as e:
            logger.error("store unavailable at startup: %s", e)
        if start_scheduler:
            scheduler.start()
        yield
        await scheduler.stop()

    app = FastAPI(lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.client = client
    app.state.store = store
    app.state.fixture_cache = fixture_cache
    app.state.cache = state
    app.state.engine = engine
    app.state.detector = detector
    app.state.hub = hub
    app.state.writer = writer
    app.state.bets = bets
    app.state.scheduler = scheduler

    @app.exception_handler(ValidationError)
    async def on_validation_error(request: Request, exc: ValidationError):
        return JSONResponse({"success": False, "error": str(exc)}, status_code=400)

    @app.exception_handler(StoreError)
    async def on_store_error(request: Request, exc: StoreError):
        logger.error("store error on %s: %s", request.url.path, exc)
        return JSONResponse({"success": False, "error": str(exc)}, status_code=503)

    @app.exception_handler(ProviderError)
    async def on_provider_error(request: Request, exc: ProviderError):
        logger.error("provider error on %s: %s", request.url.path, exc)
        return JSONResponse({"success": False, "error": str(exc)}, status_code=502)

    @app.get("/health")
    async def health():
        return PlainTextResponse("ok")

    @app.get("/api/ev-bets")
    async def ev_bets(
        minEV: Optional[str] = None,
        maxOdds: Optional[str] = None,
        categories: Optional[str] = None,
        leagues: Optional[str] = None,
    ):
        result = state.current
        matches = filter_matches(
            result,
            min_ev=parse_float("minEV", minEV, 0.0),
            max_odds=parse_float("maxOdds", maxOdds, 10.0),
            categories=normalize_filter_values(categories),
            leagues=parse_int_list("leagues", leagues),
        )
        return {
            "success": True,
            "matches": matches_to_wire(matches),
            "availableBookmakers": list(result.bookmakers),
            "leaguesInResults": leagues_in_results(result.matches),
            "generatedAt": iso(result.last_updated),
            "totalBets": result.stats.positive_bets,
            "stats": stats_to_wire(result.stats),
        }

    @app.get("/api/status")
    async def status():
        return {
            "status": "running",
            "lastUpdated": iso(state.current.last_updated),
            "isLoading": state.is_loading,
            "error": state.error,
            "stats": stats_to_wire(state.current.stats),
            "uptime": round(time.monotonic() - started, 1),
        }

    @app.get("/api/health")
    async def api_health():
        now = utc_now()
        result = state.current
        age = (now - result.last_updated).total_seconds() / 60 if result.last_updated else None
        stale = age is None or age > STALE_AFTER_MINUTES
        store_ok = await asyncio.to_thread(store.ping)
        ph = client.health
        healthy = ph.connected and store_ok and not stale and ph.consecutive_failures < 3

        warnings = []
        if stale:
            warnings.append(f"Data is stale ({f'{age:.1f}' if age is not None else 'N/A'} minutes old)")
        if not ph.connected:
            warnings.append("LSports API disconnected")
        if not store_ok:
            warnings.append("Store disconnected")
        if ph.consecutive_failures > 0:
            warnings.append(f"{ph.consecutive_failures} consecutive failures")

        body = {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": iso(now),
            "uptime": round(time.monotonic() - started, 1),
            "services": {
                "lsports": {
                    "connected": ph.connected,
                    "lastCheck": ph.last_check,
                    "lastSuccess": ph.last_success,
                    "consecutiveFailures": ph.consecutive_failures,
                    "lastError": ph.last_error,
                },
                "store": {"connected": store_ok},
            },
            "data": {
                "lastUpdated": iso(result.last_updated),
                "ageMinutes": round(age, 1) if age is not None else None,
                "isStale": stale,
                "matchCount": len(result.matches),
                "betCount": result.stats.total_bets,
                "error": state.error,
            },
            "rateLimit": {
                "requestsInWindow": client.limiter.occupancy(),
                "maxRequests": client.limiter.max_requests,
                "windowSeconds": client.limiter.window,
            },
            "warnings": warnings,
        }
        return JSONResponse(body, status_code=200 if healthy else 503)

    @app.get("/api/debug")
    async def debug():
        lim = client.limiter
        return {
            "success": True,
            "apiMetadata": {**engine.metadata, **fixture_cache.describe(), "totalCalls": client.total_calls},
            "healthStatus": client.health.as_dict(),
            "rateLimit": {
                "requestsInWindow": lim.occupancy(),
                "maxRequests": lim.max_requests,
                "canMakeRequest": lim.wait_time() == 0,
            },
            "cache": {
                "matchCount": len(state.current.matches),
                "bookmakerCount": len(state.current.bookmakers),
                "lastUpdated": iso(state.current.last_updated),
            },
            "scheduler": {
                "cycles": scheduler.cycles,
                "lastError": scheduler.last_error,
                "subscribers": len(hub.connections),
                "lastSnapshotSaved": iso(writer.last_saved),
                "lastSnapshotRows": writer.last_inserted,
            },
        }

    @app.post("/api/refresh")
    async def refresh(payload: Optional[RefreshIn] = None):
        result = await scheduler.refresh(payload.leagues if payload else None)
        return {
            "success": state.error is None,
            "message": "Refresh complete" if state.error is None else state.error,
            "lastUpdated": iso(result.last_updated),
            "stats": stats_to_wire(result.stats),
        }

    @app.post("/api/clear-cache")
    async def clear_cache():
        fixture_cache.clear()
        return {"success": True, "message": "Fixture cache cleared. Next request will fetch fresh data."}

    @app.post("/api/snapshot")
    async def snapshot():
        logger.info("manual snapshot requested")
        inserted = await scheduler.snapshot()
        return {"success": True, "message": "Snapshot saved", "inserted": inserted}

    @app.get("/api/leagues")
    async def leagues():
        return {"success": True, "leagues": get_leagues_verbose()}

    @app.get("/api/markets")
    async def markets():
        return {"success": True, "markets": get_markets_verbose()}

    @app.get("/api/line-movement")
    async def get_line_movement(
        fixtureId: Optional[str] = None,
        marketId: Optional[str] = None,
        selection: Optional[str] = None,
    ):
        if not (fixtureId and marketId and selection):
            raise ValidationError("Missing parameters: fixtureId, marketId, selection")
        out = await asyncio.to_thread(
            line_movement,
            store,
            parse_int("fixtureId", fixtureId),
            parse_int("marketId", marketId),
            selection,
        )
        return {"success": True, **out}

    @app.get("/api/movers")
    async def movers(minChange: Optional[str] = None, hours: Optional[str] = None):
        out = await asyncio.to_thread(
            top_movers,
            store,
            min_change=parse_float("minChange", minChange, 0.5),
            hours=parse_int("hours", hours, 24),
        )
        return {"success": True, **out}

    @app.get("/api/scores")
    async def scores(fixtureIds: Optional[str] = None, fromDate: Optional[str] = None, toDate: Optional[str] = None):
        found = await asyncio.to_thread(
            get_scores, client, parse_int_list("fixtureIds", fixtureIds), fromDate, toDate
        )
        return {"success": True, "count": len(found), "scores": found}

    @app.post("/api/bets")
    async def add_bet(payload: BetIn):
        bet = await asyncio.to_thread(bets.add, payload.to_row())
        return {"success": True, "bet": row_to_wire(bet)}

    @app.get("/api/bets")
    async def list_bets(status: Optional[str] = None):
        if status and status != "all" and status not in RESULTS:
            raise ValidationError(f"Invalid status. Use: all, {', '.join(RESULTS)}")
        rows = await asyncio.to_thread(bets.list, status)
        return {"success": True, "bets": [row_to_wire(r) for r in rows], "stats": summarize_bets(rows)}

    @app.patch("/api/bets/{bet_id}")
    async def settle_bet(bet_id: int, payload: ResultIn):
        if payload.result not in RESULTS:
            raise ValidationError(f"Invalid result. Use: {', '.join(RESULTS)}")
        bet = await asyncio.to_thread(bets.set_result, bet_id, payload.result)
        if bet is None:
            return JSONResponse({"success": False, "error": "Bet not found"}, status_code=404)
        return {"success": True, "bet": row_to_wire(bet)}

    @app.delete("/api/bets/{bet_id}")
    async def delete_bet(bet_id: int):
        await asyncio.to_thread(bets.remove, bet_id)
        return {"success": True}

    @app.websocket("/stream")
    async def stream(ws: WebSocket):
        sid = await hub.connect(ws)
        try:
            while True:
                text = await ws.receive_text()
                await hub.handle_message(sid, text, lambda: state.current)
        except WebSocketDisconnect:
            pass
        finally:
            await hub.disconnect(sid)

    return app


settings = Settings()
configure_logging(settings.log_level)
app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run("app:app", host="0.0.0.0", port=settings.port, reload=False)
