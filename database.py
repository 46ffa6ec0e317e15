import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from config import DATABASE_URL

logger = logging.getLogger("finance-backend.database")

IS_SQLITE = DATABASE_URL.startswith("sqlite")

# SQLite connections are tied to the loop that opened them; don't pool them
_engine_kwargs = {"poolclass": NullPool} if IS_SQLITE else {"pool_pre_ping": True}

engine = create_async_engine(DATABASE_URL, echo=False, future=True, **_engine_kwargs)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()


async def get_db() -> AsyncSession:
    async with async_session() as session:
        yield session


async def init_models():
    """Create any missing tables. Safe to call on every startup."""
    # models must be imported so their tables are registered on Base.metadata
    import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured (%s)", "sqlite" if IS_SQLITE else "server")


async def drop_models():
    import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def ping() -> bool:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True
