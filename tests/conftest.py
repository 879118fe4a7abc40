import sys
import os

# Ensure src directory is in Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

# Use in-memory SQLite for tests; must be set before the engine is created
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from uptimer.database import Base, engine, get_session_factory
from uptimer.main import app
from uptimer.models import Agent, Monitor, NotificationChannel, NotificationSettings, User

app.state._testing = True

test_engine = engine
test_session_factory = get_session_factory()


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def user() -> User:
    async with test_session_factory() as db:
        u = User(email="owner@example.com", name="Owner")
        db.add(u)
        await db.commit()
        return u


async def create_monitor(user_id: str, **overrides) -> Monitor:
    data = {
        "name": "Test Site",
        "url": "https://example.com/health",
        "method": "GET",
        "interval": 60,
        "timeout": 5,
        "expected_status": 200,
        "active": True,
        "status": "pending",
        "headers": {},
    }
    data.update(overrides)
    async with test_session_factory() as db:
        monitor = Monitor(user_id=user_id, **data)
        db.add(monitor)
        await db.commit()
        return monitor


async def create_agent(user_id: str, **overrides) -> Agent:
    data = {
        "name": "web-01",
        "hostname": "web-01.internal",
        "ip_addresses": ["10.0.0.5"],
        "os": "Ubuntu 24.04",
        "status": "online",
    }
    data.update(overrides)
    async with test_session_factory() as db:
        agent = Agent(user_id=user_id, **data)
        db.add(agent)
        await db.commit()
        return agent


async def create_channel(user_id: str, name: str, **overrides) -> NotificationChannel:
    data = {
        "type": "webhook",
        "config": {"url": f"https://hooks.example.com/{name}"},
        "enabled": True,
    }
    data.update(overrides)
    async with test_session_factory() as db:
        channel = NotificationChannel(user_id=user_id, name=name, **data)
        db.add(channel)
        await db.commit()
        return channel


async def create_settings(user_id: str, target_type: str, target_id=None, **overrides) -> NotificationSettings:
    data = {"enabled": True, "channels": []}
    data.update(overrides)
    async with test_session_factory() as db:
        row = NotificationSettings(
            user_id=user_id, target_type=target_type, target_id=target_id, **data
        )
        db.add(row)
        await db.commit()
        return row


@contextmanager
def mock_http(status_code: int = 200, side_effect=None):
    """Patch the checker's httpx client to answer with a status code or raise."""
    with patch("uptimer.checker.httpx.AsyncClient") as MockClient:
        mock_response = MagicMock()
        mock_response.status_code = status_code

        mock_client_instance = AsyncMock()
        if side_effect is not None:
            mock_client_instance.request = AsyncMock(side_effect=side_effect)
        else:
            mock_client_instance.request = AsyncMock(return_value=mock_response)
        mock_client_instance.__aenter__ = AsyncMock(return_value=mock_client_instance)
        mock_client_instance.__aexit__ = AsyncMock(return_value=False)
        MockClient.return_value = mock_client_instance
        yield mock_client_instance


