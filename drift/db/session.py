import logging
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from typing import AsyncGenerator

from drift.config import settings


logger = logging.getLogger(__name__)


def async_database_url(url: str) -> str:
    """Hosted Postgres hands out sync URLs; point them at asyncpg."""
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


database_url = async_database_url(settings.DATABASE_URL)

engine_options = {"echo": False, "pool_pre_ping": True}
if not database_url.startswith("sqlite"):
    engine_options.update(pool_size=5, max_overflow=10)

engine = create_async_engine(database_url, **engine_options)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Declarative base shared by every table in ``drift.models``."""


async def init_db():
    """Create missing tables. Schema changes beyond that go through migrations."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database ready (%s)", engine.url.get_backend_name())


async def close_db():
    await engine.dispose()
    logger.info("Database engine disposed")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; commits on success and rolls back on any error."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
