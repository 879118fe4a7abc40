"""
APScheduler integration — one periodic tick drives every monitor.

Each tick selects the active monitors whose interval has elapsed and starts a
check task for each, bounded by a shared semaphore. The tick returns without
waiting, so the next tick runs on time even while a slow check is pending. A
monitor that is still being checked is skipped, so checks for the same
monitor never overlap. Because evaluation happens on the tick, a monitor is
checked with tick granularity, not exactly on its interval.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from uptimer.agents import detect_offline_agents
from uptimer.checker import CheckRun, perform_check
from uptimer.clock import as_utc, utcnow
from uptimer.config import get_settings
from uptimer.database import get_session_factory
from uptimer.exceptions import CheckInProgress
from uptimer.models.monitor import Monitor

logger = logging.getLogger("uptimer.scheduler")
settings = get_settings()


def is_due(monitor: Monitor, now: datetime) -> bool:
    """Never-checked monitors are always due; otherwise due once the interval has elapsed."""
    last_checked = as_utc(monitor.last_checked)
    if last_checked is None:
        return True
    return as_utc(now) >= last_checked + timedelta(seconds=monitor.interval)


async def list_due_monitors(db: AsyncSession, now: datetime) -> list[Monitor]:
    result = await db.execute(
        select(Monitor).where(Monitor.active == True)  # noqa: E712
    )
    return [m for m in result.scalars().all() if is_due(m, now)]


class CheckScheduler:
    """Owns the in-flight guard, the check tasks and the periodic jobs."""

    def __init__(
        self,
        max_concurrent_checks: Optional[int] = None,
        tick_seconds: Optional[int] = None,
    ):
        self.max_concurrent_checks = max_concurrent_checks or settings.max_concurrent_checks
        self.tick_seconds = tick_seconds or settings.scheduler_tick_seconds
        self._in_flight: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        # Shared across ticks
        self._semaphore = asyncio.Semaphore(self.max_concurrent_checks)
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def _acquire(self, monitor_id: str) -> bool:
        # Single event loop: check-and-add cannot interleave
        if monitor_id in self._in_flight:
            return False
        self._in_flight.add(monitor_id)
        return True

    def _release(self, monitor_id: str) -> None:
        self._in_flight.discard(monitor_id)

    async def _guarded_check(
        self, monitor_id: str, now: Optional[datetime], manual: bool
    ) -> Optional[CheckRun]:
        try:
            return await perform_check(monitor_id, now=now, manual=manual)
        except Exception:
            logger.exception(f"Error checking monitor {monitor_id}")
            return None
        finally:
            self._release(monitor_id)

    async def _limited_check(self, monitor_id: str, now: Optional[datetime]) -> None:
        async with self._semaphore:
            await self._guarded_check(monitor_id, now, manual=False)

    async def run_tick(self, now: Optional[datetime] = None) -> list[str]:
        """One scheduling pass. Starts a task per due monitor and returns their ids.

        The tick does not wait for the checks. A slow monitor stays in flight and
        is skipped by later ticks while every other monitor keeps being checked.
        """
        evaluated_at = as_utc(now) or utcnow()
        try:
            async with get_session_factory()() as db:
                due_monitors = await list_due_monitors(db, evaluated_at)
        except Exception:
            logger.exception("Could not load monitors for this tick")
            return []

        started = []
        for monitor in due_monitors:
            if not self._acquire(monitor.id):
                logger.debug(f"Monitor {monitor.id} still being checked, skipping this tick")
                continue
            task = asyncio.create_task(self._limited_check(monitor.id, now))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            started.append(monitor.id)

        if started:
            logger.debug(f"Started checks for {len(started)} due monitor(s)")
        return started

    async def drain(self) -> None:
        """Wait for every check started by a tick to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def check_now(self, monitor_id: str) -> Optional[CheckRun]:
        """Manual check: skips the due predicate but still respects the in-flight guard."""
        if not self._acquire(monitor_id):
            raise CheckInProgress(f"Monitor {monitor_id} is already being checked")
        return await self._guarded_check(monitor_id, None, manual=True)

    def start(self) -> None:
        if self.running:
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_tick,
            trigger=IntervalTrigger(seconds=self.tick_seconds),
            id="run_checks",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=self.tick_seconds,
        )
        self._scheduler.add_job(
            detect_offline_agents,
            trigger=IntervalTrigger(seconds=settings.agent_check_seconds),
            id="detect_offline_agents",
            replace_existing=True,
            max_instances=1,
        )
        self._scheduler.start()
        logger.info(
            f"Scheduler started (tick={self.tick_seconds}s, "
            f"max_concurrent={self.max_concurrent_checks})"
        )

    def stop(self) -> None:
        if self.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        self._scheduler = None
        for task in list(self._tasks):
            task.cancel()


check_scheduler = CheckScheduler()


def start_scheduler() -> None:
    check_scheduler.start()


def stop_scheduler() -> None:
    check_scheduler.stop()
