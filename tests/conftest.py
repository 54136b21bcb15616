import os

# Settings are read at import time; configure before importing app modules.
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("MEMORY_SWEEP_ENABLED", "false")
os.environ.setdefault("STORE_RETRY_ATTEMPTS", "3")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.db.models import Base, Subscription
from tests.mocks import FakeCounterStore, FakeLLM, HistoryStore


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'engagement.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def counter():
    return FakeCounterStore()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def histories():
    return HistoryStore()


@pytest.fixture
def subscribe(session_factory):
    """subscribe(user_id, plan, status="active", current_period_end=None)"""

    async def _subscribe(user_id, plan, status="active", current_period_end=None):
        async with session_factory() as s:
            sub = await s.get(Subscription, user_id)
            if sub is None:
                sub = Subscription(user_id=user_id)
                s.add(sub)
            sub.plan = plan
            sub.status = status
            sub.current_period_end = current_period_end
            await s.commit()

    return _subscribe


@pytest_asyncio.fixture
async def client(session_factory, counter, llm, histories):
    from httpx import ASGITransport, AsyncClient

    from app.api.chat import get_history_factory, get_llm
    from app.db.session import get_db, get_session_factory
    from app.main import app
    from app.utils.infrastructure.counter import get_counter_store

    async def override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_counter_store] = lambda: counter
    app.dependency_overrides[get_llm] = lambda: llm
    app.dependency_overrides[get_history_factory] = lambda: histories
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    from app.utils.auth import create_token

    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_token({'sub': user_id})}"}

    return _headers
