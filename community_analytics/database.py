import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from community_analytics.config import settings


logger = logging.getLogger(__name__)

engine = create_async_engine(
    str(settings.DATABASE_URL),
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
)

# Services keep using rows after commit, so nothing expires on commit
async_session = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


def register_models() -> None:
    """Import every table module so its tables land on SQLModel.metadata."""
    from community_analytics.ml import models as _ml  # noqa: F401
    from community_analytics.sentiment import models as _sentiment  # noqa: F401
    from community_analytics.trends import models as _trends  # noqa: F401


async def init_db() -> None:
    """Create the analytics tables that do not exist yet."""
    register_models()

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    logger.info(
        "Analytics store ready: %s",
        ", ".join(sorted(SQLModel.metadata.tables)),
    )


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """
    Session for work outside a request, such as worker tasks.

    Uncommitted work is rolled back when the block raises.
    """
    async with async_session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped database session."""
    async with session_scope() as session:
        yield session
