from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from uptimer.database import get_db
from uptimer.exceptions import CheckInProgress
from uptimer.history import get_daily_stats, get_recent_history
from uptimer.models.monitor import Monitor
from uptimer.scheduler import check_scheduler
from uptimer.schemas import (
    CheckResultResponse,
    DailyStatResponse,
    ManualCheckResponse,
    StatusHistoryResponse,
)

router = APIRouter(prefix="/api/monitors", tags=["monitors"])


async def _get_monitor_or_404(db: AsyncSession, monitor_id: str) -> Monitor:
    monitor = await db.get(Monitor, monitor_id)
    if not monitor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Monitor not found",
        )
    return monitor


@router.post("/{monitor_id}/check", response_model=ManualCheckResponse)
async def check_monitor_now(
    monitor_id: str,
    db: AsyncSession = Depends(get_db),
):
    await _get_monitor_or_404(db, monitor_id)
    try:
        run = await check_scheduler.check_now(monitor_id)
    except CheckInProgress:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A check for this monitor is already running",
        )
    if run is None:
        raise HTTPException(status_code=500, detail="Check could not be completed")

    return ManualCheckResponse(
        monitor_id=run.monitor_id,
        previous_status=run.previous_status,
        result=CheckResultResponse.model_validate(run.result),
    )


@router.get("/{monitor_id}/history", response_model=list[StatusHistoryResponse])
async def get_monitor_history(
    monitor_id: str,
    hours: int = 24,
    db: AsyncSession = Depends(get_db),
):
    await _get_monitor_or_404(db, monitor_id)
    hours = max(1, min(hours, 24))
    entries = await get_recent_history(db, monitor_id, hours=hours)
    return [StatusHistoryResponse.model_validate(e) for e in entries]


@router.get("/{monitor_id}/daily", response_model=list[DailyStatResponse])
async def get_monitor_daily_stats(
    monitor_id: str,
    db: AsyncSession = Depends(get_db),
):
    await _get_monitor_or_404(db, monitor_id)
    stats = await get_daily_stats(db, monitor_id)
    return [DailyStatResponse.model_validate(s) for s in stats]
