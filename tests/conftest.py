import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from tpch_q3.main import app
from tpch_q3.core import models
from tpch_q3.core.database import Base, get_db, get_session_factory


# Every test gets its own SQLite file, created from the models and thrown away after
@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tpch_test.db'}", echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


# Session factory, what the query uses for its concurrent scans
@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


# Session and rollback once it is done
@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


# Client
@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, session_factory):
    async def override_get_db():
        yield db_session

    async def override_get_session_factory():
        return session_factory

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = override_get_session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# Insert TPC-H rows (dicts from tpch_rows) into the test database
@pytest_asyncio.fixture(scope="function")
async def seed(db_session: AsyncSession):
    async def _seed(customers=(), orders=(), line_items=()):
        for model, rows in (
            (models.Customer, customers),
            (models.Order, orders),
            (models.LineItem, line_items),
        ):
            if rows:
                await db_session.execute(insert(model), list(rows))
        await db_session.commit()

    return _seed
