"""Tests for agent threshold evaluation and offline detection."""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from uptimer.agents import detect_offline_agents, record_agent_metrics, threshold_crossings
from uptimer.models import Agent
from uptimer.notifications.resolver import EffectivePolicy, NotificationEvent

from tests.conftest import create_agent, create_settings, test_session_factory

NOW = datetime(2026, 6, 10, 12, 0, 0, tzinfo=timezone.utc)


def _events(notify: AsyncMock) -> list[NotificationEvent]:
    return [c.args[2] for c in notify.await_args_list]


# --- threshold_crossings ---

def test_crossings_only_for_enabled_metrics():
    policy = EffectivePolicy(
        source="global-agent", enabled=True, channels=("A",),
        on_cpu_threshold=True, cpu_threshold=90.0,
        on_memory_threshold=False, memory_threshold=85.0,
    )
    crossings = threshold_crossings(
        policy,
        {"cpu": 50.0, "memory": 50.0, "disk": 50.0},
        {"cpu": 95.0, "memory": 99.0, "disk": 99.0},
    )

    assert crossings == [(NotificationEvent.CPU_THRESHOLD, "CPU usage 95.0% exceeded threshold 90.0%")]


def test_no_policy_no_crossings():
    assert threshold_crossings(None, {}, {"cpu": 100.0}) == []


# --- record_agent_metrics ---

@pytest.mark.asyncio
async def test_threshold_fires_on_rising_edge_only(user):
    agent = await create_agent(user.id, cpu_usage=50.0)
    await create_settings(user.id, "global-agent", on_cpu_threshold=True, cpu_threshold=90.0, channels=["A"])

    with patch("uptimer.agents.notify_agent_event", new_callable=AsyncMock) as notify:
        first = await record_agent_metrics(agent.id, cpu=95.0, memory=10.0, disk=10.0, now=NOW)
        second = await record_agent_metrics(agent.id, cpu=97.0, memory=10.0, disk=10.0, now=NOW)
        await record_agent_metrics(agent.id, cpu=40.0, memory=10.0, disk=10.0, now=NOW)
        third = await record_agent_metrics(agent.id, cpu=92.0, memory=10.0, disk=10.0, now=NOW)

    assert first == [NotificationEvent.CPU_THRESHOLD]
    assert second == []
    assert third == [NotificationEvent.CPU_THRESHOLD]
    assert _events(notify) == [NotificationEvent.CPU_THRESHOLD, NotificationEvent.CPU_THRESHOLD]

    _, _, _, variables = notify.await_args_list[0].args
    assert variables["details"] == "CPU usage 95.0% exceeded threshold 90.0%"
    assert variables["hostname"] == "web-01.internal"


@pytest.mark.asyncio
async def test_specific_agent_threshold_overrides_global(user):
    agent = await create_agent(user.id, disk_usage=70.0)
    await create_settings(user.id, "global-agent", on_disk_threshold=True, disk_threshold=90.0, channels=["A"])
    await create_settings(user.id, "agent", agent.id, on_disk_threshold=True, disk_threshold=75.0, channels=["B"])

    with patch("uptimer.agents.notify_agent_event", new_callable=AsyncMock) as notify:
        events = await record_agent_metrics(agent.id, cpu=10.0, memory=10.0, disk=80.0, now=NOW)

    assert events == [NotificationEvent.DISK_THRESHOLD]
    notify.assert_awaited_once()


@pytest.mark.asyncio
async def test_metrics_are_stored(user):
    agent = await create_agent(user.id, status="pending")

    with patch("uptimer.agents.notify_agent_event", new_callable=AsyncMock) as notify:
        events = await record_agent_metrics(agent.id, cpu=12.5, memory=40.0, disk=55.0, now=NOW)

    assert events == []
    notify.assert_not_awaited()
    async with test_session_factory() as db:
        stored = await db.get(Agent, agent.id)
        assert stored.status == "online"
        assert stored.cpu_usage == 12.5
        assert stored.memory_usage == 40.0
        assert stored.disk_usage == 55.0
        assert stored.last_seen.replace(tzinfo=timezone.utc) == NOW


@pytest.mark.asyncio
async def test_unknown_agent_ignored():
    with patch("uptimer.agents.notify_agent_event", new_callable=AsyncMock) as notify:
        events = await record_agent_metrics("missing", cpu=99.0, memory=99.0, disk=99.0)
    assert events == []
    notify.assert_not_awaited()


# --- offline / recovery ---

@pytest.mark.asyncio
async def test_offline_detected_once(user):
    stale = await create_agent(user.id, name="stale", last_seen=NOW - timedelta(minutes=10))
    fresh = await create_agent(user.id, name="fresh", last_seen=NOW - timedelta(seconds=30))

    with patch("uptimer.agents.notify_agent_event", new_callable=AsyncMock) as notify:
        first = await detect_offline_agents(now=NOW)
        second = await detect_offline_agents(now=NOW + timedelta(minutes=1))

    assert first == [stale.id]
    assert second == []
    assert _events(notify) == [NotificationEvent.OFFLINE]

    async with test_session_factory() as db:
        assert (await db.get(Agent, stale.id)).status == "offline"
        assert (await db.get(Agent, fresh.id)).status == "online"


@pytest.mark.asyncio
async def test_offline_agent_recovers_on_next_sample(user):
    agent = await create_agent(user.id, status="offline", last_seen=NOW - timedelta(hours=1))

    with patch("uptimer.agents.notify_agent_event", new_callable=AsyncMock) as notify:
        events = await record_agent_metrics(agent.id, cpu=10.0, memory=10.0, disk=10.0, now=NOW)

    assert events == [NotificationEvent.AGENT_RECOVERY]
    _, _, event, variables = notify.await_args.args
    assert event is NotificationEvent.AGENT_RECOVERY
    assert variables["previous_status"] == "offline"
    assert variables["status"] == "online"


@pytest.mark.asyncio
async def test_notification_failure_does_not_stop_detection(user):
    first = await create_agent(user.id, name="a", last_seen=NOW - timedelta(minutes=10))
    second = await create_agent(user.id, name="b", last_seen=NOW - timedelta(minutes=10))

    with patch("uptimer.agents.notify_agent_event", new=AsyncMock(side_effect=RuntimeError("boom"))):
        offline = await detect_offline_agents(now=NOW)

    assert set(offline) == {first.id, second.id}
