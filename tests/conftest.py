"""Pytest configuration and fixtures for steward tests."""

import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import event, JSON, MetaData, Table, Column
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy import String
from sqlalchemy.pool import StaticPool

from steward.services.llm import GenerationResponse, Usage
from steward.tools import ToolContext, build_default_registry


def _create_sqlite_compatible_metadata():
    """Create a new metadata with SQLite-compatible column types.

    This creates a copy of the models metadata with JSONB replaced by JSON
    and PostgreSQL UUID replaced by String for SQLite compatibility.
    """
    # Import here to avoid circular imports
    from steward.db.models import Base

    new_metadata = MetaData()

    for table_name, table in Base.metadata.tables.items():
        columns = []
        for col in table.columns:
            col_type = col.type
            # Replace PostgreSQL-specific types
            if isinstance(col_type, JSONB):
                col_type = JSON()
            elif isinstance(col_type, PG_UUID):
                col_type = String(36)

            new_col = Column(
                col.name,
                col_type,
                *[c.copy() for c in col.constraints if not c._type_bound],
                primary_key=col.primary_key,
                nullable=col.nullable,
                default=col.default,
                server_default=col.server_default,
                autoincrement=False,
            )
            columns.append(new_col)

        Table(
            table_name,
            new_metadata,
            *columns,
        )

    return new_metadata


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    # StaticPool keeps every session on the same in-memory database
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Create tables using SQLite-compatible metadata
    sqlite_metadata = _create_sqlite_compatible_metadata()

    async with engine.begin() as conn:
        await conn.run_sync(sqlite_metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Create a database session for testing."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def session_factory(db_engine):
    """Create a session factory for testing."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def text_reply(text: str, tokens_in: int = 10, tokens_out: int = 5) -> GenerationResponse:
    return GenerationResponse(
        content_blocks=[{"type": "text", "text": text}],
        usage=Usage(input_tokens=tokens_in, output_tokens=tokens_out),
    )


def tool_reply(
    name: str,
    tool_input: dict | None = None,
    tool_id: str = "call_1",
    text: str = "",
    tokens_in: int = 10,
    tokens_out: int = 5,
) -> GenerationResponse:
    blocks = [{"type": "text", "text": text}] if text else []
    blocks.append({"type": "tool_use", "id": tool_id, "name": name, "input": tool_input or {}})
    return GenerationResponse(
        content_blocks=blocks,
        usage=Usage(input_tokens=tokens_in, output_tokens=tokens_out),
    )


@pytest.fixture
def replies():
    """Builders for scripted model responses."""
    return SimpleNamespace(text=text_reply, tool=tool_reply)


@pytest.fixture
def mock_client():
    """Text-generation client whose responses are scripted per test.

    Set `mock_client.generate.side_effect` to a list of responses, or
    `return_value` for a single repeated response.
    """
    client = MagicMock()
    client.generate = AsyncMock(return_value=text_reply("All quiet."))
    return client


@pytest.fixture
def tool_registry():
    """Registry holding every built-in tool."""
    return build_default_registry()


@pytest.fixture
def mock_notifier():
    """Create a mock NotificationDispatcher."""
    notifier = MagicMock()
    notifier.notify_escalation = AsyncMock(return_value={"success": True, "action": "digest"})
    notifier.notify_report = AsyncMock(return_value={"success": True, "action": "none"})
    notifier.notify_task_failure = AsyncMock(return_value={"success": True, "action": "immediate"})
    notifier.send_daily_digest = AsyncMock(return_value={"success": True, "action": "immediate"})
    return notifier


@pytest.fixture
def tool_context(session_factory):
    """Tool context without a session, scheduler hook or notifier."""
    return ToolContext(session_factory=session_factory)
