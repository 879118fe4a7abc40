"""
Check history: the append-only recent ledger and its daily rollup.

Daily stats are folded in one sample at a time from running counters, so the
cost per check stays constant no matter how much history exists. They are
never rebuilt from the raw ledger.
"""
import datetime as dt
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from uptimer.clock import as_utc, utcnow
from uptimer.config import get_settings
from uptimer.models.daily_stat import DailyStat
from uptimer.models.status_history import StatusHistoryEntry

logger = logging.getLogger("uptimer.history")
settings = get_settings()


def record_history(db: AsyncSession, entry: StatusHistoryEntry) -> StatusHistoryEntry:
    """Stage an append of one history entry; the caller commits."""
    db.add(entry)
    return entry


def fold_sample(stat: DailyStat, entry: StatusHistoryEntry) -> DailyStat:
    """Fold one history entry into a daily aggregate in place."""
    stat.total_checks = (stat.total_checks or 0) + 1
    if entry.status == "up":
        stat.up_checks = (stat.up_checks or 0) + 1
    else:
        stat.down_checks = (stat.down_checks or 0) + 1
        if stat.last_status != "down":
            stat.outage_count = (stat.outage_count or 0) + 1

    stat.total_response_time = (stat.total_response_time or 0) + (entry.response_time or 0)
    stat.avg_response_time = round(stat.total_response_time / stat.total_checks, 2)
    stat.availability = round((stat.up_checks or 0) / stat.total_checks * 100, 2)
    stat.last_status = entry.status
    return stat


async def rollup_daily_stat(
    db: AsyncSession,
    monitor_id: str,
    day: dt.date,
    entry: StatusHistoryEntry,
) -> DailyStat:
    """Update-or-insert the (monitor, day) row with the new sample folded in."""
    result = await db.execute(
        select(DailyStat).where(DailyStat.monitor_id == monitor_id, DailyStat.date == day)
    )
    stat = result.scalar_one_or_none()
    if stat is None:
        stat = DailyStat(
            monitor_id=monitor_id,
            date=day,
            total_checks=0,
            up_checks=0,
            down_checks=0,
            total_response_time=0,
            avg_response_time=0.0,
            availability=100.0,
            outage_count=0,
        )
        db.add(stat)
        logger.debug(f"Starting daily stats for monitor {monitor_id} on {day}")
    return fold_sample(stat, entry)


async def get_recent_history(
    db: AsyncSession,
    monitor_id: str,
    hours: Optional[int] = None,
    now: Optional[dt.datetime] = None,
) -> list[StatusHistoryEntry]:
    """History for a monitor within the last `hours` (default 24), oldest first."""
    hours = hours or settings.history_window_hours
    cutoff = (as_utc(now) or utcnow()) - dt.timedelta(hours=hours)
    result = await db.execute(
        select(StatusHistoryEntry)
        .where(
            StatusHistoryEntry.monitor_id == monitor_id,
            StatusHistoryEntry.timestamp >= cutoff,
        )
        .order_by(StatusHistoryEntry.timestamp.asc())
    )
    return list(result.scalars().all())


async def get_daily_stats(db: AsyncSession, monitor_id: str) -> list[DailyStat]:
    result = await db.execute(
        select(DailyStat)
        .where(DailyStat.monitor_id == monitor_id)
        .order_by(DailyStat.date.asc())
    )
    return list(result.scalars().all())
