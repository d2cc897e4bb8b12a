"""Test fixtures."""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from order_reports.config import get_settings
from order_reports.database import Base, get_db
from order_reports.main import app
from order_reports.models import ShopeeOrder

# Use SQLite for tests (no external DB needed)
TEST_DB_URL = "sqlite+aiosqlite:///./test_reports.db"

test_engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=NullPool)
test_session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def setup_db():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session(setup_db) -> AsyncGenerator[AsyncSession, None]:
    async with test_session() as session:
        yield session


@pytest_asyncio.fixture
async def seed_orders(setup_db):
    """Insert raw order dicts into the orders table."""
    async def _seed(orders: list[dict]) -> None:
        async with test_session() as session:
            session.add_all([ShopeeOrder(**o) for o in orders])
            await session.commit()
    return _seed


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with test_session() as session:
        yield session


app.dependency_overrides[get_db] = override_get_db


def _reset_rate_limiter():
    """Reset the in-memory rate limiter between tests to avoid 429s."""
    cur = app.middleware_stack
    while cur is not None:
        if hasattr(cur, "limiter"):
            cur.limiter.reset()
            return
        cur = getattr(cur, "app", None)


@pytest.fixture(autouse=True)
def reset_app_state():
    _reset_rate_limiter()
    yield
    app.dependency_overrides.pop(get_settings, None)


@pytest_asyncio.fixture
async def client(setup_db) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
