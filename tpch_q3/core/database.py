from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from tpch_q3.core.config import settings

engine = create_async_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)

# Sessions stay usable after commit, the query pipeline reads rows after closing them
AsyncSessionLocal = async_sessionmaker(
    bind=engine, class_=AsyncSession, expire_on_commit=False
)


# One session per request for the simple endpoints
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


# The query opens one session per concurrent table scan, so it needs the factory itself
async def get_session_factory():
    return AsyncSessionLocal


# All the TPC-H tables and the result sink are registered on this Base
class Base(DeclarativeBase):
    pass
