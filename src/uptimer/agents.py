"""
Agent evaluation — threshold crossings and offline/recovery detection.

How metrics reach the server is not handled here; callers hand over one sample
at a time. The previous sample stays on the Agent row so every threshold is
edge-triggered: it fires when a value rises above its threshold, not again
while it stays there.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select

from uptimer.clock import as_utc, utcnow
from uptimer.config import get_settings
from uptimer.database import get_session_factory
from uptimer.models.agent import Agent
from uptimer.models.notification import TARGET_AGENT
from uptimer.notifications.dispatcher import build_agent_variables, notify_agent_event
from uptimer.notifications.resolver import EffectivePolicy, NotificationEvent, crossed_threshold
from uptimer.notifications.settings import load_policy

logger = logging.getLogger("uptimer.agents")
settings = get_settings()

# (metric key, policy flag, policy threshold, event, label)
THRESHOLD_METRICS = (
    ("cpu", "on_cpu_threshold", "cpu_threshold", NotificationEvent.CPU_THRESHOLD, "CPU"),
    ("memory", "on_memory_threshold", "memory_threshold", NotificationEvent.MEMORY_THRESHOLD, "Memory"),
    ("disk", "on_disk_threshold", "disk_threshold", NotificationEvent.DISK_THRESHOLD, "Disk"),
)


def threshold_crossings(
    policy: Optional[EffectivePolicy],
    previous: dict[str, Optional[float]],
    current: dict[str, Optional[float]],
) -> list[tuple[NotificationEvent, str]]:
    """Events for every enabled metric that crossed its threshold on this sample."""
    if policy is None:
        return []
    crossings = []
    for key, flag, threshold_attr, event, label in THRESHOLD_METRICS:
        if not getattr(policy, flag):
            continue
        threshold = getattr(policy, threshold_attr)
        if crossed_threshold(previous.get(key), current.get(key), threshold):
            crossings.append(
                (event, f"{label} usage {current[key]:.1f}% exceeded threshold {threshold:.1f}%")
            )
    return crossings


async def record_agent_metrics(
    agent_id: str,
    cpu: Optional[float],
    memory: Optional[float],
    disk: Optional[float],
    now: Optional[datetime] = None,
) -> list[NotificationEvent]:
    """Store a metric sample and notify on recovery and rising-edge threshold crossings."""
    async with get_session_factory()() as db:
        agent = await db.get(Agent, agent_id)
        if agent is None:
            logger.warning(f"Metrics for unknown agent {agent_id} ignored")
            return []

        seen_at = as_utc(now) or utcnow()
        previous_status = agent.status or "pending"
        previous = {"cpu": agent.cpu_usage, "memory": agent.memory_usage, "disk": agent.disk_usage}
        current = {"cpu": cpu, "memory": memory, "disk": disk}

        agent.cpu_usage = cpu
        agent.memory_usage = memory
        agent.disk_usage = disk
        agent.last_seen = seen_at
        agent.status = "online"
        await db.commit()

        events: list[tuple[NotificationEvent, str, str]] = []
        if previous_status == "offline":
            logger.info(f"RECOVERED: agent {agent.name} is reporting again")
            events.append((NotificationEvent.AGENT_RECOVERY, "online", "Agent is reporting again"))

        policy = await load_policy(db, agent.user_id, TARGET_AGENT, agent.id)
        for event, details in threshold_crossings(policy, previous, current):
            logger.warning(f"THRESHOLD: agent {agent.name} - {details}")
            events.append((event, event.value, details))

        for event, status, details in events:
            variables = build_agent_variables(agent, previous_status, status, details, seen_at)
            try:
                await notify_agent_event(db, agent, event, variables)
            except Exception:
                logger.exception(f"Notification for agent {agent.id} failed")

        return [event for event, _, _ in events]


async def detect_offline_agents(now: Optional[datetime] = None) -> list[str]:
    """Mark online agents that stopped reporting as offline. Fires once per outage."""
    checked_at = as_utc(now) or utcnow()
    cutoff = checked_at - timedelta(seconds=settings.agent_offline_after)
    offline_ids = []

    async with get_session_factory()() as db:
        result = await db.execute(
            select(Agent).where(Agent.status == "online", Agent.last_seen.is_not(None))
        )
        for agent in result.scalars().all():
            if as_utc(agent.last_seen) >= cutoff:
                continue
            previous_status = agent.status
            agent.status = "offline"
            await db.commit()
            offline_ids.append(agent.id)
            logger.warning(f"OFFLINE: agent {agent.name} last seen {agent.last_seen}")

            variables = build_agent_variables(
                agent,
                previous_status,
                "offline",
                f"No metrics received for {settings.agent_offline_after}s",
                checked_at,
            )
            try:
                await notify_agent_event(db, agent, NotificationEvent.OFFLINE, variables)
            except Exception:
                logger.exception(f"Notification for agent {agent.id} failed")

    return offline_ids
