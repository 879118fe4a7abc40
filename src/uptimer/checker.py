"""
Uptime check engine — performs HTTP checks, records results, detects transitions.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError

from uptimer.clock import as_utc, utcnow
from uptimer.database import get_session_factory
from uptimer.exceptions import (
    CheckError,
    CheckStatusMismatch,
    CheckTimeout,
    CheckTransportError,
    HistoryWriteFailure,
)
from uptimer.history import record_history, rollup_daily_stat
from uptimer.models.monitor import Monitor
from uptimer.models.status_history import StatusHistoryEntry
from uptimer.notifications.dispatcher import build_monitor_variables, notify_monitor_event
from uptimer.notifications.resolver import NotificationEvent, monitor_transition_event

logger = logging.getLogger("uptimer.checker")


@dataclass
class CheckResult:
    status: str  # up, down
    status_code: Optional[int] = None
    response_time_ms: Optional[int] = None
    error: Optional[str] = None


@dataclass
class CheckRun:
    monitor_id: str
    previous_status: str
    result: CheckResult
    event: Optional[NotificationEvent] = None


def _classify_connect_error(exc: httpx.ConnectError) -> str:
    message = str(exc)[:200]
    lowered = message.lower()
    if any(s in lowered for s in ("name or service not known", "nodename nor servname", "getaddrinfo", "name resolution")):
        return f"DNS resolution failed: {message}"
    if "refused" in lowered:
        return f"Connection refused: {message}"
    if "ssl" in lowered or "certificate" in lowered or "tls" in lowered:
        return f"TLS error: {message}"
    return f"Connection failed: {message}"


async def _request(
    method: str,
    url: str,
    headers: Optional[dict],
    body: Optional[str],
    timeout: float,
) -> int:
    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(timeout),
            verify=True,
        ) as client:
            response = await asyncio.wait_for(
                client.request(method, url, headers=headers or None, content=body or None),
                timeout=timeout,
            )
            return response.status_code
    except (httpx.TimeoutException, asyncio.TimeoutError) as e:
        raise CheckTimeout(f"timeout: no response within {timeout}s") from e
    except httpx.ConnectError as e:
        raise CheckTransportError(_classify_connect_error(e)) from e
    except httpx.RequestError as e:
        raise CheckTransportError(f"Request error: {str(e)[:200]}") from e


async def execute_check(
    method: str,
    url: str,
    headers: Optional[dict] = None,
    body: Optional[str] = None,
    timeout: float = 30,
    expected_status: int = 200,
) -> CheckResult:
    """Run one HTTP check. Every failure comes back as a "down" result, never as an exception."""
    status_code = None
    start = time.monotonic()
    try:
        status_code = await _request(method.upper(), url, headers, body, timeout)
        if status_code != expected_status:
            raise CheckStatusMismatch(expected_status, status_code)
    except CheckError as e:
        return CheckResult(
            status="down",
            status_code=status_code,
            response_time_ms=int((time.monotonic() - start) * 1000),
            error=str(e),
        )
    except Exception as e:
        return CheckResult(
            status="down",
            response_time_ms=int((time.monotonic() - start) * 1000),
            error=f"Unexpected error: {str(e)[:200]}",
        )

    return CheckResult(
        status="up",
        status_code=status_code,
        response_time_ms=int((time.monotonic() - start) * 1000),
    )


async def _record_result(monitor_id: str, result: CheckResult, now: datetime) -> None:
    """Append the history entry and fold it into today's stats in a session of its own."""
    entry = StatusHistoryEntry(
        monitor_id=monitor_id,
        timestamp=now,
        status=result.status,
        response_time=result.response_time_ms,
        status_code=result.status_code,
        error=result.error,
    )
    async with get_session_factory()() as db:
        try:
            record_history(db, entry)
            await rollup_daily_stat(db, monitor_id, now.date(), entry)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise HistoryWriteFailure(f"Could not record check for monitor {monitor_id}: {e}") from e


async def perform_check(
    monitor_id: str,
    now: Optional[datetime] = None,
    manual: bool = False,
) -> Optional[CheckRun]:
    """Check one monitor, persist the outcome and notify on a status transition.

    Paused monitors are skipped unless the check was requested manually.
    """
    async with get_session_factory()() as db:
        monitor = await db.get(Monitor, monitor_id)
        if monitor is None:
            logger.warning(f"Monitor {monitor_id} no longer exists, skipping check")
            return None
        if not monitor.active and not manual:
            return None

        result = await execute_check(
            monitor.method,
            monitor.url,
            headers=monitor.headers,
            body=monitor.body,
            timeout=monitor.timeout,
            expected_status=monitor.expected_status,
        )

        checked_at = as_utc(now) or utcnow()
        previous_status = monitor.status or "pending"

        monitor.status = result.status
        monitor.last_checked = checked_at
        monitor.response_time = result.response_time_ms
        await db.commit()

        try:
            await _record_result(monitor.id, result, checked_at)
        except HistoryWriteFailure as e:
            logger.error(str(e))

        event = monitor_transition_event(previous_status, result.status)
        if event is NotificationEvent.DOWN:
            logger.warning(f"DOWN: {monitor.name} ({monitor.url}) - {result.error}")
        elif event is NotificationEvent.RECOVERY:
            logger.info(f"RECOVERED: {monitor.name} ({monitor.url}) is back up")

        if event is not None:
            variables = build_monitor_variables(monitor, previous_status, result, checked_at)
            try:
                await notify_monitor_event(db, monitor, event, variables)
            except Exception:
                logger.exception(f"Notification for monitor {monitor.id} failed")

        return CheckRun(
            monitor_id=monitor.id,
            previous_status=previous_status,
            result=result,
            event=event,
        )
