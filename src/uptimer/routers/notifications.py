from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from uptimer.database import get_db
from uptimer.notifications.dispatcher import get_notification_history
from uptimer.schemas import NotificationHistoryPage, NotificationHistoryResponse

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("/history", response_model=NotificationHistoryPage)
async def list_notification_history(
    type: Optional[str] = None,
    target_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    total, records = await get_notification_history(
        db, type=type, target_id=target_id, status=status, limit=limit, offset=offset
    )
    return NotificationHistoryPage(
        total=total,
        records=[NotificationHistoryResponse.model_validate(r) for r in records],
    )
