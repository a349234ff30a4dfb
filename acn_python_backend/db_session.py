"""
Async engine and sessions for the Argument Confidence Network.
"""

from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from acn_python_backend.config import DATABASE_URL as _CONFIGURED_URL


def async_database_url(url: str) -> str:
    """Point bare ``postgresql://`` URLs at the asyncpg driver."""
    if url and url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


DATABASE_URL = async_database_url(_CONFIGURED_URL)

async_engine = create_async_engine(DATABASE_URL, echo=False)

AsyncSessionLocal = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(engine: Optional[AsyncEngine] = None) -> None:
    """Create any missing tables. Called once from the app lifespan."""
    from acn_python_backend.models import Base

    async with (engine or async_engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session() -> AsyncIterator[AsyncSession]:
    """Request-scoped session; commits on success, rolls back on error."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker:
    """Factory used by background tasks that outlive the request session."""
    return AsyncSessionLocal
