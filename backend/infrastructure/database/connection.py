"""Database connection and session management."""
from typing import AsyncGenerator, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import Settings, get_settings
from .models.base import Base

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def build_database_url(settings: Settings) -> str:
    """Return the store URL with the service key applied as the password.

    File and in-memory databases have no host and are returned unchanged.
    """
    url = make_url(settings.database_url)
    if not (url.host and settings.database_service_key):
        return settings.database_url
    return url.set(password=settings.database_service_key).render_as_string(hide_password=False)


def get_engine() -> AsyncEngine:
    """Create the async engine on first use."""
    global _engine, _session_factory

    if _engine is not None:
        return _engine

    settings = get_settings()
    url = build_database_url(settings)

    engine_kwargs = {"echo": settings.database_echo, "pool_pre_ping": True}
    if make_url(url).host:
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=10,
            pool_recycle=3600,
        )
        # Enforce SSL for networked databases in production
        if settings.is_production:
            engine_kwargs["connect_args"] = {"ssl": "require"}

    _engine = create_async_engine(url, **engine_kwargs)
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory, creating the engine if needed."""
    if _session_factory is None:
        get_engine()
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting database sessions."""
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Initialize database tables."""
    # Import models so metadata is populated before create_all
    from . import models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
