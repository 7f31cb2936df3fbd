"""
Database connection and session management.
"""

from sqlalchemy.orm import declarative_base
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from typing import Optional
from callrelay.config import settings
from callrelay.utils.logging import get_logger

logger = get_logger(__name__)

# Create base class for ORM models
Base = declarative_base()

_async_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


# Convert database URL for async if needed
def get_async_database_url(db_url: Optional[str] = None) -> str:
    """Convert database URL to async version if needed."""
    db_url = db_url or settings.database_url

    # Convert postgresql:// to postgresql+asyncpg://
    if db_url.startswith("postgresql://"):
        return db_url.replace("postgresql://", "postgresql+asyncpg://")
    # Convert sqlite:// to sqlite+aiosqlite://
    elif db_url.startswith("sqlite://"):
        return db_url.replace("sqlite://", "sqlite+aiosqlite://")

    return db_url


def create_engine_for(db_url: Optional[str] = None) -> AsyncEngine:
    """Create an async engine with pool settings suited to the backend."""
    url = get_async_database_url(db_url)

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.endswith("://"):
            # One shared connection, otherwise every checkout gets an empty database
            kwargs["poolclass"] = StaticPool
        return create_async_engine(url, echo=settings.debug, **kwargs)

    return create_async_engine(
        url,
        echo=settings.debug,
        pool_size=settings.connection_pool_size,
        max_overflow=10,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Get the process-wide async engine, creating it on first use."""
    global _async_engine
    if _async_engine is None:
        _async_engine = create_engine_for()
    return _async_engine


def get_session_factory() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


async def init_database(engine: Optional[AsyncEngine] = None):
    """Initialize database tables."""
    # Import models so they register with the metadata
    from callrelay.models import call, number  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")


async def close_database():
    """Close database connections."""
    global _async_engine, _session_factory
    if _async_engine is not None:
        await _async_engine.dispose()
    _async_engine = None
    _session_factory = None
    logger.info("Database connections closed")
