
from __future__ import annotations

import asyncio
import logging
import random
import time
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

from calculations.changes import ChangeDetector
from calculations.evcalc import RefreshEngine
from calculations.models import ResultSet
from calculations.snapshot import SnapshotWriter
from lsportsOdds.http import ProviderError
from storage.store import StoreError
from utils.timeutil import utc_now

from .config import Settings
from .hub import Hub

logger = logging.getLogger("server")


class Scheduler:
    """
    Drives the refresh cycle (fixtures -> markets -> EV -> diff -> fan-out -> full update)
    on a fixed interval and takes periodic snapshots.

    Refresh and snapshot share one lock, so they never overlap. An on-demand refresh
    joins the cycle already in flight instead of starting another.
    """
    def __init__(
        self,
        engine: RefreshEngine,
        detector: ChangeDetector,
        hub: Hub,
        writer: SnapshotWriter,
        settings: Settings,
        *,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = utc_now,
        rng: Callable[[], float] = random.random,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.engine = engine
        self.detector = detector
        self.hub = hub
        self.writer = writer
        self.settings = settings
        self._clock = clock
        self._now = now
        self._rng = rng
        self._sleep = sleep
        self.lock = asyncio.Lock()
        self._inflight: Optional[asyncio.Task] = None
        self._task: Optional[asyncio.Task] = None
        self.started_at: Optional[float] = None
        self.last_snapshot_at: Optional[float] = None
        self.last_error: Optional[str] = None
        self.cycles = 0

    @property
    def state(self):
        return self.engine.state

    async def run_cycle(self, leagues: Optional[List[int]] = None) -> ResultSet:
        async with self.lock:
            try:
                result = await asyncio.to_thread(self.engine.refresh, None, leagues)
            except ProviderError as e:
                logger.error("refresh failed: %s", e)
                self.last_error = str(e)
                self.state.fail(str(e))
                return self.state.current
            except Exception as e:
                logger.exception("refresh cycle failed")
                self.last_error = str(e)
                self.state.fail(str(e))
                return self.state.current
            self.cycles += 1
            self.last_error = None
            batch = self.detector.diff(result)
            await self.hub.dispatch_notifications(batch)
            await self.hub.publish_full_update(result)
            return result

    async def refresh(self, leagues: Optional[List[int]] = None) -> ResultSet:
        """Run a cycle now, or wait for the one already running."""
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self.run_cycle(leagues))
        return await asyncio.shield(self._inflight)

    def snapshot_due(self) -> bool:
        now = self._clock()
        if self.last_snapshot_at is None:
            started = self.started_at if self.started_at is not None else now
            return now - started >= self.settings.first_snapshot_delay
        return now - self.last_snapshot_at >= self.settings.snapshot_interval

    async def snapshot(self, *, cleanup: bool = False) -> int:
        """Persist eligible bets from the current result set; optionally purge old rows afterwards."""
        async with self.lock:
            now = self._now()
            try:
                inserted = await asyncio.to_thread(
                    self.writer.snapshot,
                    self.state.current,
                    now,
                    self.settings.snapshot_min_ev,
                    timedelta(hours=self.settings.snapshot_horizon_hours),
                )
            except StoreError as e:
                logger.error("snapshot failed: %s", e)
                self.last_error = str(e)
                return 0
            if cleanup and self._rng() < self.settings.cleanup_probability:
                try:
                    await asyncio.to_thread(
                        self.writer.purge_older_than,
                        timedelta(days=self.settings.snapshot_retention_days),
                        now,
                    )
                except StoreError as e:
                    logger.error("snapshot cleanup failed: %s", e)
                    self.last_error = str(e)
            return inserted

    async def tick(self) -> None:
        await self.refresh()
        if self.snapshot_due():
            self.last_snapshot_at = self._clock()
            await self.snapshot(cleanup=True)

    async def run(self) -> None:
        self.started_at = self._clock()
        logger.info(
            "scheduler started: refresh every %ss, snapshots every %ss for EV >= %s%%",
            self.settings.refresh_interval, self.settings.snapshot_interval, self.settings.snapshot_min_ev,
        )
        while True:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("scheduler tick failed")
                self.last_error = str(e)
                self.state.fail(str(e))
            await self._sleep(self.settings.refresh_interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        for task in (self._task, self._inflight):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._task = None
