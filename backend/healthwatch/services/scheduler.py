"""Scheduler service - triggers a monitoring run on a fixed interval."""
import asyncio
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..schemas.run import RunReport
from .engine import CheckEngine

logger = logging.getLogger(__name__)


class SchedulerService:
    """Runs ``engine.run_once`` every ``interval_seconds``; runs never overlap."""

    def __init__(self, engine: CheckEngine, interval_seconds: int):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.last_report: Optional[RunReport] = None
        self._running = False
        # Shared by scheduled and manual runs
        self._run_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the scheduler (no-op when the interval is 0)."""
        if self._running:
            return
        if self.interval_seconds <= 0:
            logger.info("Periodic runs disabled")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.run_now,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id="run_checks",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.interval_seconds,
        )
        self.scheduler.start()
        self._running = True
        logger.info(f"Scheduler started (interval={self.interval_seconds}s)")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    async def run_now(self) -> RunReport:
        """Run once and remember the report.

        A call made while another run is in flight waits for it to finish first.
        """
        if self._run_lock.locked():
            logger.info("A run is already in progress; waiting for it to finish")
        async with self._run_lock:
            report = await self.engine.run_once()
            self.last_report = report
        return report
