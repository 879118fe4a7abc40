import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from uptimer.models.notification import (
    GLOBAL_AGENT,
    GLOBAL_MONITOR,
    TARGET_AGENT,
    TARGET_MONITOR,
    NotificationSettings,
)
from uptimer.notifications.resolver import EffectivePolicy, dedupe_channels, resolve
from uptimer.schemas import NotificationSettingsUpdate

logger = logging.getLogger("uptimer.notifications")

GLOBAL_TARGETS = {TARGET_MONITOR: GLOBAL_MONITOR, TARGET_AGENT: GLOBAL_AGENT}
TARGET_TYPES = {GLOBAL_MONITOR, GLOBAL_AGENT, TARGET_MONITOR, TARGET_AGENT}


async def get_notification_settings(
    db: AsyncSession,
    user_id: str,
    target_type: str,
    target_id: Optional[str] = None,
) -> Optional[NotificationSettings]:
    stmt = select(NotificationSettings).where(
        NotificationSettings.user_id == user_id,
        NotificationSettings.target_type == target_type,
    )
    if target_id is None:
        stmt = stmt.where(NotificationSettings.target_id.is_(None))
    else:
        stmt = stmt.where(NotificationSettings.target_id == target_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def load_policy(
    db: AsyncSession, user_id: str, kind: str, target_id: str
) -> Optional[EffectivePolicy]:
    """Fetch the global and specific rows for a monitor/agent and resolve them."""
    global_row = await get_notification_settings(db, user_id, GLOBAL_TARGETS[kind])
    specific_row = await get_notification_settings(db, user_id, kind, target_id)
    return resolve(global_row, specific_row)


async def upsert_notification_settings(
    db: AsyncSession,
    user_id: str,
    target_type: str,
    target_id: Optional[str],
    data: NotificationSettingsUpdate,
) -> NotificationSettings:
    """Create or replace the single settings row for (user, target_type, target_id)."""
    if target_type not in TARGET_TYPES:
        raise ValueError(f"Unknown notification target type: {target_type}")
    if target_type in (GLOBAL_MONITOR, GLOBAL_AGENT):
        target_id = None
    elif not target_id:
        raise ValueError(f"target_id is required for {target_type} settings")

    values = data.model_dump()
    values["channels"] = list(dedupe_channels(values["channels"]))

    row = await get_notification_settings(db, user_id, target_type, target_id)
    if row is None:
        row = NotificationSettings(
            user_id=user_id,
            target_type=target_type,
            target_id=target_id,
            **values,
        )
        db.add(row)
    else:
        for key, value in values.items():
            setattr(row, key, value)

    await db.commit()
    logger.info(f"Saved {target_type} notification settings for user {user_id} (target={target_id})")
    return row


async def delete_notification_settings(
    db: AsyncSession, user_id: str, target_type: str, target_id: str
) -> None:
    """Drop a target-specific override so the global settings apply again."""
    if target_type not in (TARGET_MONITOR, TARGET_AGENT):
        raise ValueError("Only monitor or agent overrides can be deleted")
    await db.execute(
        delete(NotificationSettings).where(
            NotificationSettings.user_id == user_id,
            NotificationSettings.target_type == target_type,
            NotificationSettings.target_id == target_id,
        )
    )
    await db.commit()
