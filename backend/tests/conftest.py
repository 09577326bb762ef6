"""Shared fixtures: in-memory database, fake model, API client."""
import asyncio
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from supportbot.config import Settings
from supportbot.database import Database
from supportbot.dependencies import get_llm_service
from supportbot.main import create_app


class FakeLLM:
    """Stands in for LLMService; records every request it receives."""

    def __init__(
        self,
        reply: str = "We have club and national team jerseys.",
        error: Exception = None,
        delay: float = 0
    ):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls = []

    async def generate_reply(self, messages):
        self.calls.append([dict(m) for m in messages])
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


class InMemoryLock:
    """asyncio.Lock behind the redis.asyncio Lock interface used by ConversationLock."""

    def __init__(self, lock: asyncio.Lock, blocking_timeout=None):
        self._lock = lock
        self.blocking_timeout = blocking_timeout

    async def acquire(self) -> bool:
        try:
            await asyncio.wait_for(self._lock.acquire(), self.blocking_timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def release(self):
        self._lock.release()


class InMemoryLockRedis:
    """Single-process stand-in for the Redis client, only supports lock()."""

    def __init__(self):
        self.locks = {}

    def lock(self, name, timeout=None, blocking_timeout=None):
        return InMemoryLock(self.locks.setdefault(name, asyncio.Lock()), blocking_timeout)


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": "sqlite://",
        "openai_api_key": "test-key",
        "redis_url": None,
        "conversation_retention_days": 0,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def database():
    """Fresh in-memory database per test."""
    database = Database("sqlite://")
    database.create_all()

    yield database

    database.drop_all()
    database.dispose()


@pytest.fixture
def db(database) -> Session:
    """Create test database session."""
    session = database.session_factory()

    yield session

    session.close()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def app(fake_llm):
    app = create_app(make_settings())
    app.dependency_overrides[get_llm_service] = lambda: fake_llm

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    # Context manager runs the lifespan (database, lock, model client)
    with TestClient(app) as client:
        yield client
