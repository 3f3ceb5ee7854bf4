"""Database connection and session management.

Provides the async SQLAlchemy engine, session factory and the
conversation sinks built on top of them.

Thread-safety: singleton access is protected by a threading.RLock;
reentrant because get_session_factory() calls get_engine() while holding
the lock.
"""

import threading
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from toolstream.settings import Settings, get_settings
from toolstream.storage.models import Base, ConversationMessage
from toolstream.storage.repository import SqlConversationSink
from toolstream.storage.sink import ConversationSink, InMemoryConversationSink

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None
_init_lock = threading.RLock()


def get_engine(settings: Settings | None = None) -> AsyncEngine:
    """Get or create the async database engine.

    Args:
        settings: Optional settings override. Uses get_settings() if not provided.

    Returns:
        Configured AsyncEngine instance.
    """
    global _engine

    if _engine is None:
        with _init_lock:
            if _engine is None:
                settings = settings or get_settings()
                _engine = create_async_engine(
                    settings.database_url,
                    pool_size=settings.database_pool_size,
                    pool_pre_ping=True,
                    echo=settings.debug,
                )

    return _engine


def get_session_factory(settings: Settings | None = None) -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory.

    Args:
        settings: Optional settings override. Uses get_settings() if not provided.

    Returns:
        Configured async_sessionmaker instance.
    """
    global _session_factory

    if _session_factory is None:
        with _init_lock:
            if _session_factory is None:
                _session_factory = async_sessionmaker(
                    bind=get_engine(settings),
                    class_=AsyncSession,
                    expire_on_commit=False,
                    autoflush=False,
                )

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session with automatic cleanup.

    Usage:
        async with get_session() as session:
            result = await session.execute(query)
    """
    factory = get_session_factory()
    session = factory()
    try:
        yield session
    finally:
        await session.close()


async def init_db() -> None:
    """Create tables that do not exist yet."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose the engine and forget the cached factory."""
    global _engine, _session_factory

    with _init_lock:
        engine, _engine, _session_factory = _engine, None, None
    if engine is not None:
        await engine.dispose()


def get_sql_sink() -> SqlConversationSink:
    """Conversation sink bound to the configured database."""
    return SqlConversationSink(get_session)


__all__ = [
    "Base",
    "ConversationMessage",
    "ConversationSink",
    "InMemoryConversationSink",
    "SqlConversationSink",
    "close_db",
    "get_engine",
    "get_session",
    "get_session_factory",
    "get_sql_sink",
    "init_db",
]
