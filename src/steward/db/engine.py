"""Database engine and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


def create_engine(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 10,
    echo: bool = False,
    statement_timeout: int = 30000,
    command_timeout: int = 30,
) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Args:
        database_url: PostgreSQL connection URL (postgresql+asyncpg://...)
        pool_size: Number of connections to keep in the pool
        max_overflow: Maximum overflow connections beyond pool_size
        echo: Whether to log SQL statements
        statement_timeout: PostgreSQL statement timeout in milliseconds,
            also bounds queries issued by the execute_sql tool
        command_timeout: asyncpg command timeout in seconds

    Returns:
        Configured AsyncEngine instance
    """
    connect_args: dict[str, Any] = {}
    engine_kwargs: dict[str, Any] = {}
    if database_url.startswith("postgresql+asyncpg"):
        connect_args = {
            "command_timeout": command_timeout,
            "server_settings": {
                "statement_timeout": str(statement_timeout),
            },
        }
        engine_kwargs = {
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_timeout": 30,
        }

    return create_async_engine(
        database_url,
        pool_pre_ping=True,
        echo=echo,
        connect_args=connect_args,
        **engine_kwargs,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory.

    Sessions keep attribute values after commit so that rows handed to
    notification and tool code stay readable outside the session.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@asynccontextmanager
async def get_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Get a database session that commits on success and rolls back on error.

    Example:
        async with get_session(session_factory) as session:
            repo = ReportRepository(session)
            await repo.create(content="...")
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
