"""
Notification dispatch for monitor and agent events.

Sends run concurrently, each under its own timeout. A channel that fails is
recorded as failed and never affects its siblings; nothing here raises back to
the scheduler.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

import httpx
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from uptimer.clock import utcnow
from uptimer.config import get_settings
from uptimer.models.agent import Agent
from uptimer.models.monitor import Monitor
from uptimer.models.notification import (
    TARGET_AGENT,
    TARGET_MONITOR,
    NotificationChannel,
    NotificationHistory,
    NotificationTemplate,
)
from uptimer.notifications import providers
from uptimer.notifications.renderer import (
    DEFAULT_AGENT_BODY,
    DEFAULT_AGENT_SUBJECT,
    DEFAULT_MONITOR_BODY,
    DEFAULT_MONITOR_SUBJECT,
    render_message,
)
from uptimer.notifications.resolver import NotificationEvent, should_notify
from uptimer.notifications.settings import load_policy

logger = logging.getLogger("uptimer.dispatcher")
settings = get_settings()

BUILTIN_TEMPLATES = {
    TARGET_MONITOR: (DEFAULT_MONITOR_SUBJECT, DEFAULT_MONITOR_BODY),
    TARGET_AGENT: (DEFAULT_AGENT_SUBJECT, DEFAULT_AGENT_BODY),
}


def _format_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


def build_monitor_variables(
    monitor: Monitor,
    previous_status: str,
    result,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    return {
        "name": monitor.name,
        "status": result.status,
        "previous_status": previous_status,
        "time": _format_time(now or utcnow()),
        "url": monitor.url,
        "response_time": result.response_time_ms,
        "status_code": result.status_code,
        "expected_status": monitor.expected_status,
        "error": result.error,
        "details": result.error or f"HTTP {result.status_code}",
    }


def build_agent_variables(
    agent: Agent,
    previous_status: str,
    status: str,
    details: str,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    return {
        "name": agent.name,
        "status": status,
        "previous_status": previous_status,
        "time": _format_time(now or utcnow()),
        "details": details,
        "hostname": agent.hostname,
        "ip_addresses": agent.ip_addresses or [],
        "os": agent.os,
    }


async def get_template(
    db: AsyncSession,
    user_id: str,
    template_type: str,
    template_id: Optional[str] = None,
) -> Optional[NotificationTemplate]:
    """The configured template if set, otherwise the owner's default for the type."""
    if template_id:
        template = await db.get(NotificationTemplate, template_id)
        if template is not None and template.user_id == user_id and template.type == template_type:
            return template
        logger.warning(f"Template {template_id} not usable for {template_type} events, falling back to default")

    result = await db.execute(
        select(NotificationTemplate)
        .where(
            NotificationTemplate.user_id == user_id,
            NotificationTemplate.type == template_type,
            NotificationTemplate.is_default == True,  # noqa: E712
        )
        .order_by(NotificationTemplate.created_at)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _send_one(
    client: httpx.AsyncClient,
    channel: NotificationChannel,
    channel_type: providers.ChannelType,
    subject: str,
    body: str,
) -> tuple[bool, Optional[str]]:
    try:
        return await asyncio.wait_for(
            providers.send(channel_type, client, channel.config, subject, body),
            timeout=settings.dispatch_timeout,
        )
    except asyncio.TimeoutError:
        return False, f"Send timed out after {settings.dispatch_timeout}s"
    except Exception as e:
        logger.exception(f"Unexpected error sending to channel {channel.name}")
        return False, f"Unexpected error: {str(e)[:200]}"


async def dispatch(
    db: AsyncSession,
    *,
    user_id: str,
    notification_type: str,
    target_id: str,
    channel_ids: tuple[str, ...] | list[str],
    subject: str,
    body: str,
    template_id: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> list[NotificationHistory]:
    """Send one rendered message to each channel and log one history row per channel."""
    targets: list[tuple[NotificationChannel, providers.ChannelType]] = []
    for channel_id in channel_ids:
        channel = await db.get(NotificationChannel, channel_id)
        if channel is None or channel.user_id != user_id:
            logger.warning(f"Channel {channel_id} not found, skipping")
            continue
        if not channel.enabled:
            logger.info(f"Channel {channel.name} is disabled, skipping")
            continue
        channel_type = providers.get_channel_type(channel.type)
        if channel_type is None:
            logger.warning(f"Unsupported channel type '{channel.type}' for {channel.name}, skipping")
            continue
        targets.append((channel, channel_type))

    if not targets:
        return []

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=settings.dispatch_timeout)
    try:
        outcomes = await asyncio.gather(
            *[_send_one(client, channel, ctype, subject, body) for channel, ctype in targets]
        )
    finally:
        if owns_client:
            await client.aclose()

    content = f"{subject}\n\n{body}" if subject else body
    records = []
    for (channel, _), (ok, error) in zip(targets, outcomes):
        record = NotificationHistory(
            type=notification_type,
            target_id=target_id,
            channel_id=channel.id,
            template_id=template_id,
            status="sent" if ok else "failed",
            content=content,
            error=error,
            sent_at=utcnow(),
        )
        db.add(record)
        try:
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.exception(f"Failed to record notification history for channel {channel.name}")
            continue
        records.append(record)

        if ok:
            logger.info(f"Notification sent to {channel.name} ({channel.type}) for {notification_type} {target_id}")
        else:
            logger.warning(f"Notification to {channel.name} ({channel.type}) failed: {error}")

    return records


async def notify(
    db: AsyncSession,
    *,
    user_id: str,
    kind: str,
    target_id: str,
    event: NotificationEvent,
    variables: dict[str, Any],
    client: Optional[httpx.AsyncClient] = None,
) -> list[NotificationHistory]:
    policy = await load_policy(db, user_id, kind, target_id)
    if not should_notify(policy, event):
        logger.debug(f"No notification for {event.value} on {kind} {target_id}")
        return []
    source = "override" if policy.is_override else "global"
    logger.debug(f"Notifying {event.value} on {kind} {target_id} with {source} settings")

    template = await get_template(db, user_id, kind, policy.template_id)
    if template is not None:
        subject_template, body_template, template_id = template.subject, template.content, template.id
    else:
        subject_template, body_template = BUILTIN_TEMPLATES[kind]
        template_id = None

    subject, body = render_message(subject_template, body_template, variables)
    return await dispatch(
        db,
        user_id=user_id,
        notification_type=kind,
        target_id=target_id,
        channel_ids=policy.channels,
        subject=subject,
        body=body,
        template_id=template_id,
        client=client,
    )


async def notify_monitor_event(
    db: AsyncSession,
    monitor: Monitor,
    event: NotificationEvent,
    variables: dict[str, Any],
    client: Optional[httpx.AsyncClient] = None,
) -> list[NotificationHistory]:
    return await notify(
        db,
        user_id=monitor.user_id,
        kind=TARGET_MONITOR,
        target_id=monitor.id,
        event=event,
        variables=variables,
        client=client,
    )


async def notify_agent_event(
    db: AsyncSession,
    agent: Agent,
    event: NotificationEvent,
    variables: dict[str, Any],
    client: Optional[httpx.AsyncClient] = None,
) -> list[NotificationHistory]:
    return await notify(
        db,
        user_id=agent.user_id,
        kind=TARGET_AGENT,
        target_id=agent.id,
        event=event,
        variables=variables,
        client=client,
    )


async def get_notification_history(
    db: AsyncSession,
    *,
    type: Optional[str] = None,
    target_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[int, list[NotificationHistory]]:
    """Filtered page of the send log, newest first, with the total match count."""
    filters = []
    if type:
        filters.append(NotificationHistory.type == type)
    if target_id is not None:
        filters.append(NotificationHistory.target_id == target_id)
    if status:
        filters.append(NotificationHistory.status == status)

    total = await db.scalar(
        select(func.count()).select_from(NotificationHistory).where(*filters)
    )
    result = await db.execute(
        select(NotificationHistory)
        .where(*filters)
        .order_by(NotificationHistory.sent_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return total or 0, list(result.scalars().all())
